import os
from collections.abc import Iterable

from .types import DEFAULT_BASE_URL, CredentialConfig, GatewayConfig

# Primary first, then backups in priority order
DEFAULT_CREDENTIAL_VARS = ("FACEIT_API_KEY", "FACEIT_API_KEY_BACKUP")
SETTINGS_PREFIX = "STATSGATE_"


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export ") :]
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        # A missing .env file just means "environment only"
        pass
    return values


def _env_map(env_path: str | None) -> dict[str, str]:
    # actual environment takes precedence over the .env file
    file_env = _parse_env_file(env_path) if env_path else {}
    return {**file_env, **os.environ}


def _expand(cfg_name: str, token: str, split_commas: bool) -> list[CredentialConfig]:
    if split_commas and "," in token:
        parts = [t.strip() for t in token.split(",") if t.strip()]
        return [CredentialConfig(name=f"{cfg_name}_{i + 1}", token=p) for i, p in enumerate(parts)]
    return [CredentialConfig(name=cfg_name, token=token.strip())]


def load_credentials_from_env(
    names: Iterable[str] | None = None,
    prefix: str | None = None,
    env_path: str | None = None,
    **kwargs,
) -> list[CredentialConfig]:
    """Create CredentialConfig objects from environment variables, primary first.

    - If 'names' is provided, each explicit env var is looked up in order; the first
        one found becomes the primary credential.
    - If 'prefix' is provided, every env var starting with the prefix contributes
        credentials, sorted by variable name.
    - If neither is provided, DEFAULT_CREDENTIAL_VARS is used.
    - If 'env_path' is provided, variables from the .env file augment lookups
        (without mutating the process environment). Values in the actual environment
        take precedence over the file.

    Duplicate tokens are dropped so a backup never repeats the primary.

    kwargs keywords:
    to_lower_names: make names lowercase (default False)
    split_commas: split comma-separated values (default True)
    strip_prefix: strip prefix from names (default False)
    """
    env_map = _env_map(env_path)
    split_commas = kwargs.get("split_commas", True)
    to_lower_names = kwargs.get("to_lower_names", False)
    strip_prefix = kwargs.get("strip_prefix", False)

    if names is None and prefix is None:
        names = DEFAULT_CREDENTIAL_VARS

    results: list[CredentialConfig] = []
    if names:
        for var in names:
            token = env_map.get(var)
            if not token or not token.strip():
                continue
            cfg_name = var.lower() if to_lower_names else var
            results.extend(_expand(cfg_name, token, split_commas))

    if prefix:
        for var in sorted(env_map):
            token = env_map[var]
            if not (var.startswith(prefix) and token and token.strip()):
                continue
            name_part = var[len(prefix) :] if strip_prefix else var
            cfg_name = name_part.lower() if to_lower_names else name_part
            results.extend(_expand(cfg_name, token, split_commas))

    seen: set[str] = set()
    unique: list[CredentialConfig] = []
    for cfg in results:
        if cfg.token in seen:
            continue
        seen.add(cfg.token)
        unique.append(cfg)
    return unique


def _number(env_map: dict[str, str], var: str, default, cast):
    raw = env_map.get(var)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ValueError(f"{var} must be a number, got {raw!r}") from e


def load_settings_from_env(env_path: str | None = None, prefix: str = SETTINGS_PREFIX) -> GatewayConfig:
    """Read GatewayConfig values from <prefix>BASE_URL, MAX_TOKENS, REFILL_RATE,
    COOLDOWN and TIMEOUT. Missing variables keep their defaults."""
    env_map = _env_map(env_path)
    defaults = GatewayConfig()
    return GatewayConfig(
        base_url=env_map.get(f"{prefix}BASE_URL") or DEFAULT_BASE_URL,
        max_tokens=_number(env_map, f"{prefix}MAX_TOKENS", defaults.max_tokens, int),
        refill_rate=_number(env_map, f"{prefix}REFILL_RATE", defaults.refill_rate, float),
        cooldown=_number(env_map, f"{prefix}COOLDOWN", defaults.cooldown, float),
        timeout=_number(env_map, f"{prefix}TIMEOUT", defaults.timeout, float),
    )
