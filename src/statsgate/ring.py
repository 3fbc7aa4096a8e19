import contextlib
import logging
import math
import threading
import time
from collections.abc import Iterable
from typing import Callable, Union

from .env import load_credentials_from_env
from .errors import NoCredentialConfigured
from .state import RotationState
from .types import CredentialConfig, RingStatus

DEFAULT_COOLDOWN = 5 * 60.0


class CredentialRing:
    """Ordered upstream credentials with rate-limit driven rotation.

    Index 0 is the primary credential, the rest are backups in priority order.
    A 429 on the primary moves to the first backup and starts a cooldown; once the
    cooldown has passed the next ``active()`` call quietly returns to the primary.
    A 429 on a backup advances to the next backup, or wraps to the primary (and
    reports ``False``) when none are left.

    The ring never awaits while holding its lock, so one instance can be shared by
    threads and asyncio tasks alike.
    """

    def __init__(
        self,
        credentials: Iterable[Union[CredentialConfig, str]],
        cooldown: float = DEFAULT_COOLDOWN,
        clock: Union[Callable[[], float], None] = None,
        log_level: Union[int, None] = None,
    ):
        self._credentials: tuple[CredentialConfig, ...] = tuple(
            c if isinstance(c, CredentialConfig) else CredentialConfig(f"key_{i + 1}", c)
            for i, c in enumerate(credentials)
        )
        if cooldown < 0:
            raise ValueError("cooldown must be >= 0")
        self.cooldown = cooldown
        self._clock = clock or time.monotonic
        self._state = RotationState()
        self._lock = threading.Lock()
        self._logger = logging.getLogger("statsgate")
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    def _now(self) -> float:
        return self._clock()

    # ---------- inspection ----------
    @property
    def credentials(self) -> tuple[CredentialConfig, ...]:
        return self._credentials

    @property
    def active_index(self) -> int:
        with self._lock:
            return self._state.active_index

    @property
    def primary_cooldown_until(self) -> Union[float, None]:
        with self._lock:
            return self._state.primary_cooldown_until

    @property
    def switches(self) -> int:
        with self._lock:
            return self._state.switches

    def has_backup(self) -> bool:
        return len(self._credentials) > 1

    # ---------- rotation ----------
    def _heal_if_due(self, now: float) -> None:
        if self._state.cooldown_expired(now):
            self._logger.info("primary credential cooldown expired; switching back to primary")
            self._state.active_index = 0
            self._state.primary_cooldown_until = None

    def active_credential(self) -> CredentialConfig:
        if not self._credentials:
            raise NoCredentialConfigured()
        with self._lock:
            self._heal_if_due(self._now())
            return self._credentials[self._state.active_index]

    def active(self) -> str:
        """Return the token to present on the next outbound call."""
        return self.active_credential().token

    def report_rate_limited(self, token: Union[str, None] = None) -> bool:
        """Record a 429 and rotate. Returns True if a retry with ``active()`` makes sense.

        Args:
            token (str | None): the token that was rate limited. When given and it is
                no longer the active one, another caller already rotated past it, so
                the state is left alone.
        """
        n = len(self._credentials)
        if n <= 1:
            self._logger.warning("rate limited but no backup credential configured; cannot rotate")
            return False
        with self._lock:
            now = self._now()
            self._heal_if_due(now)
            st = self._state
            current = self._credentials[st.active_index]
            if token is not None and token != current.token:
                self._logger.debug(
                    f"stale rate limit report; already rotated to {current.name}"
                )
                return True
            if st.active_index == 0:
                st.active_index = 1
                st.primary_cooldown_until = now + self.cooldown
                st.switches += 1
                self._logger.info(
                    f"primary credential {current.name} rate limited; switched to "
                    f"{self._credentials[1].name}, primary retried in {self.cooldown:g}s"
                )
                return True
            nxt = st.active_index + 1
            if nxt < n:
                st.active_index = nxt
                st.switches += 1
                self._logger.info(
                    f"backup credential {current.name} rate limited; switched to "
                    f"{self._credentials[nxt].name}"
                )
                return True
            st.active_index = 0
            st.primary_cooldown_until = None
            st.switches += 1
            self._logger.warning(
                f"backup credential {current.name} also rate limited; falling back to primary"
            )
            return False

    def status(self) -> RingStatus:
        with self._lock:
            now = self._now()
            self._heal_if_due(now)
            st = self._state
            blocked_for = None
            if st.primary_cooldown_until is not None:
                blocked_for = max(0, math.ceil(st.primary_cooldown_until - now))
            return RingStatus(
                active="primary" if st.active_index == 0 else "backup",
                active_index=st.active_index,
                backup_available=self.has_backup(),
                primary_blocked_for=blocked_for,
            )

    # ---------- convenience: build from env ----------
    @classmethod
    def from_env(
        cls,
        names=None,
        prefix: Union[str, None] = None,
        env_path: Union[str, None] = None,
        **kwargs,
    ):
        """Build a ring from environment variables (see ``load_credentials_from_env``).

        Loader flags (``split_commas``, ``to_lower_names``, ``strip_prefix``) are
        forwarded to the loader; anything else goes to the constructor.
        """
        loader_keys = {
            k: kwargs.pop(k)
            for k in list(kwargs.keys())
            if k in {"to_lower_names", "split_commas", "strip_prefix"}
        }
        creds = load_credentials_from_env(
            names=names, prefix=prefix, env_path=env_path, **loader_keys
        )
        return cls(creds, **kwargs)
