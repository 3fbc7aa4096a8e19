import pytest

from statsgate import InvalidIdentifier
from statsgate.validation import (
    clamp_limit,
    extract_match_id,
    is_valid_match_id,
    is_valid_nickname,
    is_valid_player_id,
    require_player_id,
)

PLAYER = "5ea07280-2399-4c7e-88ab-f2f7db0c449f"
MATCH = "1-8e2a5d3b-0f6c-4c1a-9d2e-3b4f5a6c7d8e"


def test_player_ids():
    assert is_valid_player_id(PLAYER)
    assert is_valid_player_id(PLAYER.upper())
    assert not is_valid_player_id("")
    assert not is_valid_player_id(None)
    assert not is_valid_player_id(MATCH)
    assert not is_valid_player_id("../players")


def test_match_ids():
    assert is_valid_match_id(MATCH)
    assert not is_valid_match_id(PLAYER)
    assert not is_valid_match_id("1-nope")


def test_nicknames():
    assert is_valid_nickname("s1mple")
    assert is_valid_nickname("ab")
    assert not is_valid_nickname("a")
    assert not is_valid_nickname("x" * 31)
    assert not is_valid_nickname("bad name")
    assert not is_valid_nickname("<script>")


def test_require_raises_value_error():
    with pytest.raises(InvalidIdentifier) as ei:
        require_player_id("nope")
    assert isinstance(ei.value, ValueError)
    assert ei.value.kind == "player id"


def test_clamp_limit():
    assert clamp_limit(0) == 1
    assert clamp_limit(500) == 100  # noqa: PLR2004
    assert clamp_limit("30") == 30  # noqa: PLR2004
    assert clamp_limit("junk", default=7) == 7  # noqa: PLR2004


def test_extract_match_id():
    assert extract_match_id(f"https://www.faceit.com/en/cs2/room/{MATCH}/scoreboard") == MATCH
    assert extract_match_id(f"  {MATCH} ") == MATCH
    assert extract_match_id("https://example.com/room/1-bad") is None
    assert extract_match_id("") is None


def test_extract_match_id_only_reads_first_100_chars():
    url = f"https://www.faceit.com/en/cs2/room/{MATCH}"
    assert extract_match_id(url) == MATCH
    assert extract_match_id("?" * (101 - len(url)) + url) is None
