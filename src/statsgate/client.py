from datetime import datetime, timezone
from urllib.parse import quote, urlencode

from .errors import UpstreamError
from .validation import (
    clamp_limit,
    require_game,
    require_match_id,
    require_nickname,
    require_player_id,
)

DEFAULT_GAME = "cs2"

# ---------- endpoint paths (validated before any token is spent) ----------


def _path(*segments: str, **params) -> str:
    path = "/" + "/".join(quote(s, safe="") for s in segments)
    if params:
        path += "?" + urlencode(params)
    return path


def search_players_path(nickname: str, limit: int = 5) -> str:
    return _path("search", "players", nickname=require_nickname(nickname), limit=clamp_limit(limit, 5))


def player_by_nickname_path(nickname: str) -> str:
    return _path("players", nickname=require_nickname(nickname))


def player_path(player_id: str) -> str:
    return _path("players", require_player_id(player_id))


def player_stats_path(player_id: str, game: str = DEFAULT_GAME) -> str:
    return _path("players", require_player_id(player_id), "stats", require_game(game))


def player_history_path(player_id: str, game: str = DEFAULT_GAME, offset: int = 0, limit: int = 20) -> str:
    return _path(
        "players",
        require_player_id(player_id),
        "history",
        game=require_game(game),
        offset=max(0, int(offset)),
        limit=clamp_limit(limit),
    )


def match_path(match_id: str) -> str:
    return _path("matches", require_match_id(match_id))


def match_stats_path(match_id: str) -> str:
    return _path("matches", require_match_id(match_id), "stats")


def _exact_match(search_result, nickname: str):
    wanted = nickname.lower()
    for item in (search_result or {}).get("items") or []:
        if str(item.get("nickname", "")).lower() == wanted:
            return item
    return None


# Latest-history statuses that mean the match may still be running
LIVE_STATUSES = frozenset({"ONGOING", "READY", "VOTING", "CONFIGURING"})
DONE_STATUSES = frozenset({"FINISHED", "CANCELLED"})


def _live_candidate(history) -> str | None:
    """Match id of the newest history item if it may still be in progress."""
    items = (history or {}).get("items") or []
    if not items:
        return None
    latest = items[0]
    if not latest.get("finished_at") or latest.get("status") in LIVE_STATUSES:
        return latest.get("match_id")
    return None


def _still_running(match) -> bool:
    return bool(match) and match.get("status") not in DONE_STATUSES


def _elo_items(history) -> dict:
    """Reduce match history to {match_id, date, elo} points, oldest first.

    Items without a positive elo are dropped; dates are UTC days.
    """
    points = []
    for match in (history or {}).get("items") or []:
        elo = match.get("elo") or 0
        if elo <= 0:
            continue
        finished = match.get("finished_at") or 0
        points.append(
            {
                "match_id": match.get("match_id"),
                "date": datetime.fromtimestamp(finished, tz=timezone.utc).date().isoformat(),
                "elo": elo,
            }
        )
    points.reverse()
    return {"items": points}


# ---------- sync client ----------


class StatsClient:
    """Typed call wrappers over a RequestExecutor. Records are returned as the
    upstream's parsed JSON (dicts), unchanged."""

    def __init__(self, executor):
        self.executor = executor

    def search_players(self, nickname: str, limit: int = 5) -> dict:
        return self.executor.execute(search_players_path(nickname, limit))

    def get_player_by_nickname(self, nickname: str) -> dict:
        """Exact nickname lookup, falling back to a case-insensitive search on 404."""
        path = player_by_nickname_path(nickname)
        try:
            return self.executor.execute(path)
        except UpstreamError as e:
            if e.status_code != 404:  # noqa: PLR2004
                raise
            hit = _exact_match(self.search_players(nickname), nickname)
            if hit is None:
                raise
            return self.executor.execute(player_by_nickname_path(hit["nickname"]))

    def get_player(self, player_id: str) -> dict:
        return self.executor.execute(player_path(player_id))

    def get_player_stats(self, player_id: str, game: str = DEFAULT_GAME) -> dict:
        return self.executor.execute(player_stats_path(player_id, game))

    def get_player_history(
        self, player_id: str, game: str = DEFAULT_GAME, offset: int = 0, limit: int = 20
    ) -> dict:
        return self.executor.execute(player_history_path(player_id, game, offset, limit))

    def get_player_elo_history(
        self, player_id: str, game: str = DEFAULT_GAME, limit: int = 100
    ) -> dict:
        return _elo_items(self.get_player_history(player_id, game, 0, limit))

    def get_player_ongoing_match(self, player_id: str) -> dict | None:
        """The player's current match, or None when the latest one is over."""
        match_id = _live_candidate(self.get_player_history(player_id, DEFAULT_GAME, 0, 1))
        if not match_id:
            return None
        match = self.get_match(match_id)
        return match if _still_running(match) else None

    def get_match(self, match_id: str) -> dict:
        return self.executor.execute(match_path(match_id))

    def get_match_stats(self, match_id: str) -> dict:
        return self.executor.execute(match_stats_path(match_id))


# ---------- async client ----------


class AsyncStatsClient:
    def __init__(self, executor):
        self.executor = executor

    async def search_players(self, nickname: str, limit: int = 5) -> dict:
        return await self.executor.execute(search_players_path(nickname, limit))

    async def get_player_by_nickname(self, nickname: str) -> dict:
        path = player_by_nickname_path(nickname)
        try:
            return await self.executor.execute(path)
        except UpstreamError as e:
            if e.status_code != 404:  # noqa: PLR2004
                raise
            hit = _exact_match(await self.search_players(nickname), nickname)
            if hit is None:
                raise
            return await self.executor.execute(player_by_nickname_path(hit["nickname"]))

    async def get_player(self, player_id: str) -> dict:
        return await self.executor.execute(player_path(player_id))

    async def get_player_stats(self, player_id: str, game: str = DEFAULT_GAME) -> dict:
        return await self.executor.execute(player_stats_path(player_id, game))

    async def get_player_history(
        self, player_id: str, game: str = DEFAULT_GAME, offset: int = 0, limit: int = 20
    ) -> dict:
        return await self.executor.execute(player_history_path(player_id, game, offset, limit))

    async def get_player_elo_history(
        self, player_id: str, game: str = DEFAULT_GAME, limit: int = 100
    ) -> dict:
        return _elo_items(await self.get_player_history(player_id, game, 0, limit))

    async def get_player_ongoing_match(self, player_id: str) -> dict | None:
        match_id = _live_candidate(await self.get_player_history(player_id, DEFAULT_GAME, 0, 1))
        if not match_id:
            return None
        match = await self.get_match(match_id)
        return match if _still_running(match) else None

    async def get_match(self, match_id: str) -> dict:
        return await self.executor.execute(match_path(match_id))

    async def get_match_stats(self, match_id: str) -> dict:
        return await self.executor.execute(match_stats_path(match_id))
