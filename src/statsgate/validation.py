"""Identifier checks applied before anything is sent upstream."""

import re
from typing import Union

from .errors import InvalidIdentifier

_UUID = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
_PLAYER_ID_RE = re.compile(rf"^{_UUID}$", re.IGNORECASE)
_MATCH_ID_RE = re.compile(rf"^1-{_UUID}$", re.IGNORECASE)
_ROOM_RE = re.compile(r"room/(1-[0-9a-f-]+)", re.IGNORECASE)
_NICKNAME_RE = re.compile(r"^[A-Za-z0-9_-]{2,30}$")
_GAME_RE = re.compile(r"^[a-z0-9_]{1,32}$")

MAX_LIMIT = 100


def is_valid_player_id(value: object) -> bool:
    return isinstance(value, str) and bool(_PLAYER_ID_RE.match(value))


def is_valid_match_id(value: object) -> bool:
    return isinstance(value, str) and bool(_MATCH_ID_RE.match(value))


def is_valid_nickname(value: object) -> bool:
    return isinstance(value, str) and bool(_NICKNAME_RE.match(value))


def require_player_id(value: object) -> str:
    if not is_valid_player_id(value):
        raise InvalidIdentifier("player id", value)
    return value


def require_match_id(value: object) -> str:
    if not is_valid_match_id(value):
        raise InvalidIdentifier("match id", value)
    return value


def require_nickname(value: object) -> str:
    if not is_valid_nickname(value):
        raise InvalidIdentifier("nickname", value)
    return value


def require_game(value: object) -> str:
    if not (isinstance(value, str) and _GAME_RE.match(value)):
        raise InvalidIdentifier("game", value)
    return value


def clamp_limit(value: Union[int, str, None], default: int = 20) -> int:
    """Coerce a page size into [1, MAX_LIMIT]; junk falls back to ``default``."""
    try:
        n = int(value)
    except (TypeError, ValueError):
        n = default
    return min(max(n, 1), MAX_LIMIT)


def extract_match_id(text: Union[str, None]) -> Union[str, None]:
    """Pull a match id out of a room URL, or accept a bare match id. None if neither."""
    if not text:
        return None
    cleaned = re.sub(r"[<>\"'&]", "", text.strip()[:100])
    m = _ROOM_RE.search(cleaned)
    if m and is_valid_match_id(m.group(1)):
        return m.group(1)
    if is_valid_match_id(cleaned):
        return cleaned
    return None
