"""
Feed client tests: HTTP failure mapping, snapshot normalisation, team search
and the freshness cache. Uses httpx.MockTransport, no network.

Run: pytest backend/tests/test_feed.py -v
"""
from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from shared.config import Settings
from shared.errors import UnknownSport, UpstreamUnavailable
from shared.models.enums import GameState
from shared.utils.http_client import ScoreboardHTTPClient

from feed.client import FeedClient, scoreboard_path
from feed.normalize import parse_event, parse_scoreboard

from factories import make_event

NBA = "basketball/nba"


def _client(handler: Callable[[httpx.Request], httpx.Response], settings: Settings) -> FeedClient:
    http = ScoreboardHTTPClient(transport=httpx.MockTransport(handler), settings=settings)
    return FeedClient(http=http, settings=settings)


def _json(body: Any, status: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)
    return handler


# ── Normalisation ───────────────────────────────────────────────────────

def test_parse_event_coerces_scores_to_int() -> None:
    snap = parse_event(make_event(home=("Lakers", "LAL", "102"), away=("Celtics", "BOS", "99")), NBA)
    assert snap is not None
    assert snap.home.score == 102
    assert snap.away.score == 99
    assert snap.state == GameState.LIVE
    assert snap.period == 3


def test_parse_event_missing_score_defaults_to_zero() -> None:
    snap = parse_event(make_event(state="pre", home=("Lakers", "LAL", None), away=("Celtics", "BOS", "")), NBA)
    assert snap is not None
    assert (snap.home.score, snap.away.score) == (0, 0)
    assert snap.state == GameState.PRE


def test_parse_event_completed_is_final() -> None:
    snap = parse_event(make_event(state="post", completed=True), NBA)
    assert snap is not None
    assert snap.is_final
    assert snap.completed


def test_parse_event_without_competitors_is_skipped() -> None:
    event = make_event()
    event["competitions"][0]["competitors"] = event["competitions"][0]["competitors"][:1]
    assert parse_event(event, NBA) is None
    assert parse_event({"id": "1", "competitions": []}, NBA) is None


def test_parse_scoreboard_skips_malformed_events() -> None:
    data = {"events": [make_event("1"), {"id": "2"}, "junk", make_event("3")]}
    assert [s.game_id for s in parse_scoreboard(data, NBA)] == ["1", "3"]


def test_format_status_variants() -> None:
    pre = parse_event(make_event(state="pre", home=("Lakers", "LAL", "0"), away=("Celtics", "BOS", "0")), NBA)
    live = parse_event(make_event(period=2, clock="3:12"), NBA)
    final = parse_event(make_event(state="post", completed=True), NBA)
    assert pre.format_status() == "Upcoming: Celtics @ Lakers"
    assert live.format_status() == "LIVE Q2 3:12: Celtics 78, Lakers 80"
    assert final.format_status() == "FINAL: Celtics 78, Lakers 80"



def test_parse_event_tolerates_non_object_team() -> None:
    event = make_event()
    event["competitions"][0]["competitors"][0]["team"] = "LAL"
    snap = parse_event(event, NBA)
    assert snap is not None
    assert snap.home.name == ""
    assert snap.home.score == 80


def test_parse_event_rejects_non_object_status() -> None:
    event = make_event()
    event["status"] = "STATUS_IN_PROGRESS"
    with pytest.raises(ValueError):
        parse_event(event, NBA)

    event = make_event()
    event["status"]["type"] = "in"
    with pytest.raises(ValueError):
        parse_event(event, NBA)

# ── Endpoint mapping ────────────────────────────────────────────────────

def test_scoreboard_path_for_known_sport() -> None:
    assert scoreboard_path("soccer/usa.1") == "/soccer/usa.1/scoreboard"


def test_scoreboard_path_rejects_unknown_sport() -> None:
    with pytest.raises(UnknownSport):
        scoreboard_path("curling/world")


# ── HTTP behaviour ──────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fetch_scoreboard_requests_sport_endpoint(settings: Settings) -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"events": [make_event("401")]})

    client = _client(handler, settings)
    games = await client.fetch_scoreboard(NBA)
    await client.close()

    assert [g.game_id for g in games] == ["401"]
    assert seen == ["/apis/site/v2/sports/basketball/nba/scoreboard"]


@pytest.mark.asyncio
async def test_non_success_status_raises_upstream_unavailable(settings: Settings) -> None:
    client = _client(_json({"error": "nope"}, status=503), settings)
    with pytest.raises(UpstreamUnavailable) as exc_info:
        await client.fetch_scoreboard(NBA)
    assert exc_info.value.status_code == 503
    assert exc_info.value.sport == NBA


@pytest.mark.asyncio
async def test_transport_error_raises_upstream_unavailable(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamUnavailable):
        await _client(handler, settings).fetch_scoreboard(NBA)


@pytest.mark.asyncio
async def test_timeout_raises_upstream_unavailable(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await _client(handler, settings).fetch_scoreboard(NBA)
    assert "timed out" in exc_info.value.reason


@pytest.mark.asyncio
async def test_non_json_body_raises_upstream_unavailable(settings: Settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(UpstreamUnavailable):
        await _client(handler, settings).fetch_scoreboard(NBA)


@pytest.mark.asyncio
async def test_missing_events_raises_upstream_unavailable(settings: Settings) -> None:
    with pytest.raises(UpstreamUnavailable):
        await _client(_json({"leagues": []}), settings).fetch_scoreboard(NBA)


@pytest.mark.asyncio
async def test_malformed_event_raises_upstream_unavailable(settings: Settings) -> None:
    broken = make_event("402")
    broken["status"] = "STATUS_IN_PROGRESS"
    client = _client(_json({"events": [make_event("401"), broken]}), settings)

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await client.fetch_scoreboard(NBA)
    assert exc_info.value.reason == "malformed body"

@pytest.mark.asyncio
async def test_no_retry_on_failure(settings: Settings) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(500)

    with pytest.raises(UpstreamUnavailable):
        await _client(handler, settings).fetch_scoreboard(NBA)
    assert calls == 1


@pytest.mark.asyncio
async def test_http_client_builds_once_without_start(settings: Settings) -> None:
    http = ScoreboardHTTPClient(transport=httpx.MockTransport(_json({"events": []})), settings=settings)

    first, _ = await http.get_json(scoreboard_path(NBA), sport=NBA)
    client = http._client
    second, _ = await http.get_json(scoreboard_path(NBA), sport=NBA)

    assert first == second == {"events": []}
    assert client is not None and http._client is client
    await http.close()
    assert http._client is None


# ── Freshness cache ─────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_local_cache_serves_repeat_reads_within_ttl(settings: Settings) -> None:
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"events": [make_event("401")]})

    client = _client(handler, settings)
    await client.fetch_scoreboard(NBA)
    await client.fetch_scoreboard(NBA)
    assert calls == 1


@pytest.mark.asyncio
async def test_cache_disabled_with_zero_ttl() -> None:
    settings = Settings(feed_cache_ttl_s=0)
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(200, json={"events": []})

    client = _client(handler, settings)
    await client.fetch_scoreboard(NBA)
    await client.fetch_scoreboard(NBA)
    assert calls == 2


@pytest.mark.asyncio
async def test_redis_cache_hit_skips_http(settings: Settings) -> None:
    from unittest.mock import AsyncMock, MagicMock

    redis = MagicMock()
    redis.get_scoreboard = AsyncMock(return_value=json.dumps({"events": [make_event("777")]}))
    redis.set_scoreboard = AsyncMock()

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("feed should not be called on a cache hit")

    http = ScoreboardHTTPClient(transport=httpx.MockTransport(handler), settings=settings)
    client = FeedClient(http=http, redis=redis, settings=settings)

    games = await client.fetch_scoreboard(NBA)
    assert [g.game_id for g in games] == ["777"]
    redis.set_scoreboard.assert_not_awaited()


@pytest.mark.asyncio
async def test_redis_cache_errors_are_ignored(settings: Settings) -> None:
    from unittest.mock import AsyncMock, MagicMock

    from redis.exceptions import ConnectionError as RedisConnectionError

    redis = MagicMock()
    redis.get_scoreboard = AsyncMock(side_effect=RedisConnectionError("down"))
    redis.set_scoreboard = AsyncMock(side_effect=RedisConnectionError("down"))

    http = ScoreboardHTTPClient(
        transport=httpx.MockTransport(_json({"events": [make_event("401")]})), settings=settings
    )
    client = FeedClient(http=http, redis=redis, settings=settings)

    games = await client.fetch_scoreboard(NBA)
    assert [g.game_id for g in games] == ["401"]


# ── Team search ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_find_game_by_team_name_matches_any_label_case_insensitively(settings: Settings) -> None:
    body = {"events": [
        make_event("1", home=("Knicks", "NYK", "1"), away=("Heat", "MIA", "2")),
        make_event("2", home=("Lakers", "LAL", "3"), away=("Celtics", "BOS", "4"),),
    ]}
    client = _client(_json(body), settings)

    assert (await client.find_game_by_team_name("lakers")).game_id == "2"
    assert (await client.find_game_by_team_name("MIA")).game_id == "1"
    assert await client.find_game_by_team_name("warriors") is None


@pytest.mark.asyncio
async def test_find_game_by_team_name_first_match_wins(settings: Settings) -> None:
    body = {"events": [
        make_event("1", home=("Los Angeles Lakers", "LAL", "1"), away=("Heat", "MIA", "2")),
        make_event("2", home=("Los Angeles Clippers", "LAC", "3"), away=("Celtics", "BOS", "4")),
    ]}
    client = _client(_json(body), settings)
    assert (await client.find_game_by_team_name("los angeles")).game_id == "1"
