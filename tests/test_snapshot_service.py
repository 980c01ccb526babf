from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import pytest

from livetrack._cache import MemorySnapshotCache
from livetrack._codec.flags import decode_flags, encode_flags
from livetrack._codec.tally import split_tally
from livetrack._codec.wire import decode_track, decode_track_group, encode_track
from livetrack._constants import (
    KEY_FULL_PROTO,
    KEY_FULL_SIZE,
    KEY_INCREMENTAL_PROTO,
    KEY_INCREMENTAL_SIZE,
    KEY_LOG_ERRORS,
    KEY_LOG_SIZE,
    KEY_REQUEST_TIMESTAMP,
    KEY_UPDATE_SEC,
)
from livetrack._transport import HttpTransport, Transport
from livetrack.config import LiveTrackConfig
from livetrack.exceptions import LiveTrackConfigError, LiveTrackError, LiveTrackProviderError
from livetrack.ingestion.providers import TrackerProvider
from livetrack.models.entity import LiveTrackEntity, TrackerAccount
from livetrack.models.fix import LivePoint, Provider
from livetrack.models.track import LiveTrack
from livetrack.models.update import AccountFetch, DueAccount
from livetrack.service import LiveTrackService, feed_provider_factory
from livetrack.snapshot import SnapshotBuilder
from livetrack.state.store import MemoryDocumentStore

NOW = 1_700_000_000.0


class _SpotProvider:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.calls = 0

    @property
    def provider(self) -> Provider:
        return Provider.SPOT

    async def fetch(self, accounts: Sequence[DueAccount]) -> dict[int, AccountFetch]:
        self.calls += 1
        if self.fail:
            raise LiveTrackProviderError("Spot unreachable", provider="Spot")
        point = LivePoint(lat=44.5, lon=5.5, timestamp=int((NOW - 5) * 1000))
        return {account.entity_id: AccountFetch(points=[point]) for account in accounts}


def _track(times: list[float]) -> bytes:
    return encode_track(
        LiveTrack(
            lat=[45.0] * len(times),
            lon=[6.0] * len(times),
            alt=[500] * len(times),
            time_sec=[int(t) for t in times],
            flags=[encode_flags()] * len(times),
        )
    )


async def _populated_store() -> MemoryDocumentStore:
    store = MemoryDocumentStore()
    await store.put(
        LiveTrackEntity(id=1, name="recent", track=_track([NOW - 7200, NOW - 600]), last_fix_sec=int(NOW - 600))
    )
    await store.put(LiveTrackEntity(id=2, name="quiet", track=_track([NOW - 7200]), last_fix_sec=int(NOW - 7200)))
    await store.put(
        LiveTrackEntity(id=3, name="gone", track=_track([NOW - 25 * 3600]), last_fix_sec=int(NOW - 25 * 3600))
    )
    return store


# ------------------------------------------------------------------
# SnapshotBuilder
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_snapshot_full_and_incremental_contents() -> None:
    store = await _populated_store()
    cache = MemorySnapshotCache()
    builder = SnapshotBuilder(LiveTrackConfig(), store, cache, clock=lambda: NOW)

    snapshots = await builder.build_and_publish()

    full, full_incremental = decode_track_group(snapshots.full)
    assert full_incremental is False
    assert [(t.id, t.name) for t in full] == [(1, "recent"), (2, "quiet")]
    assert full[0].time_sec == [int(NOW - 7200), int(NOW - 600)]
    assert full[0].lat == [45.0, 45.0]

    incremental, is_incremental = decode_track_group(snapshots.incremental)
    assert is_incremental is True
    assert [t.id for t in incremental] == [1]
    assert incremental[0].time_sec == [int(NOW - 600)]

    assert (snapshots.full_size, snapshots.incremental_size) == (2, 1)
    assert await cache.get(KEY_FULL_PROTO) == snapshots.full
    assert await cache.get(KEY_INCREMENTAL_PROTO) == snapshots.incremental
    assert await cache.get(KEY_FULL_SIZE) == 2
    assert await cache.get(KEY_INCREMENTAL_SIZE) == 1


@pytest.mark.asyncio
async def test_snapshot_replaces_corrupt_track_with_empty(caplog: pytest.LogCaptureFixture) -> None:
    store = MemoryDocumentStore()
    await store.put(LiveTrackEntity(id=4, name="corrupt", track=b"\x80", last_fix_sec=int(NOW - 10)))
    builder = SnapshotBuilder(LiveTrackConfig(), store, MemorySnapshotCache(), clock=lambda: NOW)

    with caplog.at_level(logging.WARNING):
        snapshots = await builder.build()

    full, _ = decode_track_group(snapshots.full)
    assert [(t.id, t.size) for t in full] == [(4, 0)]
    assert snapshots.incremental_size == 0
    assert "id=4" in caplog.text


# ------------------------------------------------------------------
# LiveTrackService
# ------------------------------------------------------------------


def _service(store: MemoryDocumentStore, cache: MemorySnapshotCache, provider: _SpotProvider) -> LiveTrackService:
    return LiveTrackService(LiveTrackConfig(), store, cache, providers=[provider], clock=lambda: NOW)


async def _spot_store() -> MemoryDocumentStore:
    store = MemoryDocumentStore()
    entity = LiveTrackEntity(id=1, name="pilot")
    tracker = entity.tracker(Provider.SPOT)
    tracker.account = "feed-1"
    tracker.enabled = True
    await store.put(entity)
    return store


@pytest.mark.asyncio
async def test_refresh_requires_started_service() -> None:
    service = LiveTrackService(LiveTrackConfig(), MemoryDocumentStore(), MemorySnapshotCache())

    with pytest.raises(LiveTrackError, match="not started"):
        await service.refresh(force=True)


@pytest.mark.asyncio
@pytest.mark.parametrize("marker", [None, NOW - 601, "not-a-time"])
async def test_refresh_is_skipped_without_fresh_request(marker: float | str | None) -> None:
    cache = MemorySnapshotCache()
    if marker is not None:
        await cache.set(KEY_REQUEST_TIMESTAMP, marker)
    provider = _SpotProvider()

    async with _service(await _spot_store(), cache, provider) as service:
        result = await service.refresh()

    assert result is None
    assert provider.calls == 0
    assert await cache.get(KEY_FULL_PROTO) is None


@pytest.mark.asyncio
async def test_refresh_runs_full_cycle_after_request() -> None:
    store = await _spot_store()
    cache = MemorySnapshotCache()
    await cache.set(KEY_REQUEST_TIMESTAMP, NOW - 30)
    provider = _SpotProvider()

    async with _service(store, cache, provider) as service:
        result = await service.refresh()

    assert result is not None
    assert provider.calls == 1
    assert result.persist.saved_ids == [1]
    assert result.snapshots.full_size == 1
    (entity,) = await store.get([1])
    assert decode_track(entity.track).time_sec == [int(NOW - 5)]
    assert entity.last_fix_sec == int(NOW - 5)
    assert await cache.get(KEY_UPDATE_SEC) == round(NOW)
    assert await cache.get(KEY_FULL_PROTO) == result.snapshots.full
    assert await cache.get_list(KEY_LOG_SIZE.format(name="spot")) == ["1"]


@pytest.mark.asyncio
async def test_forced_refresh_logs_provider_failure() -> None:
    cache = MemorySnapshotCache()
    provider = _SpotProvider(fail=True)

    async with _service(await _spot_store(), cache, provider) as service:
        result = await service.refresh(force=True)

    assert result is not None
    assert result.outcomes[0].error == "Spot unreachable"
    assert result.persist.batches == []
    assert await cache.get_list(KEY_LOG_ERRORS.format(name="spot")) == ["Spot unreachable"]


class _StaticFeed:
    """Returns the same points for every due account, or raises."""

    def __init__(self, provider: Provider, *, point: LivePoint | None = None, error: Exception | None = None) -> None:
        self._provider = provider
        self._point = point
        self._error = error

    @property
    def provider(self) -> Provider:
        return self._provider

    async def fetch(self, accounts: Sequence[DueAccount]) -> dict[int, AccountFetch]:
        if self._error is not None:
            raise self._error
        assert self._point is not None
        return {account.entity_id: AccountFetch(points=[self._point]) for account in accounts}


@pytest.mark.asyncio
async def test_forced_refresh_keeps_working_providers_when_one_fails() -> None:
    store = MemoryDocumentStore()
    entity = LiveTrackEntity(id=1, name="pilot")
    for provider in (Provider.INREACH, Provider.SPOT, Provider.SKYLINES):
        tracker = entity.tracker(provider)
        tracker.account = f"{provider.prop_name}-1"
        tracker.enabled = True
    await store.put(entity)
    providers = [
        _StaticFeed(Provider.INREACH, error=LiveTrackProviderError("inReach unreachable", provider="inReach")),
        _StaticFeed(
            Provider.SPOT,
            point=LivePoint(lat=44.5, lon=5.5, alt=800, timestamp=int((NOW - 50) * 1000), device=Provider.SPOT),
        ),
        _StaticFeed(
            Provider.SKYLINES,
            point=LivePoint(lat=44.6, lon=5.6, alt=900, timestamp=int((NOW - 20) * 1000), device=Provider.SKYLINES),
        ),
    ]
    cache = MemorySnapshotCache()
    service = LiveTrackService(LiveTrackConfig(), store, cache, providers=providers, clock=lambda: NOW)

    async with service:
        result = await service.refresh(force=True)

    assert result is not None
    assert [(o.provider, o.ok) for o in result.outcomes] == [
        (Provider.INREACH, False),
        (Provider.SPOT, True),
        (Provider.SKYLINES, True),
    ]
    assert result.persist.saved_ids == [1]

    (stored,) = await store.get([1])
    track = decode_track(stored.track)
    assert track.time_sec == [int(NOW - 50), int(NOW - 20)]
    assert track.lat == [44.5, 44.6]
    assert track.alt == [800, 900]
    assert [decode_flags(f).device for f in track.flags] == [Provider.SPOT, Provider.SKYLINES]
    assert stored.last_fix_sec == int(NOW - 20)

    for provider in (Provider.SPOT, Provider.SKYLINES):
        tracker = stored.trackers[provider]
        assert split_tally(tracker.errors_requests) == (0, 1)
        assert tracker.updated == int(NOW * 1_000_000)

    failed = stored.trackers[Provider.INREACH]
    assert failed == TrackerAccount(account="inreach-1", enabled=True)
    assert await cache.get_list(KEY_LOG_ERRORS.format(name="inreach")) == ["inReach unreachable"]


@pytest.mark.asyncio
async def test_feed_provider_factory_honours_fetch_concurrency() -> None:
    class _CountingTransport:
        def __init__(self) -> None:
            self.in_flight = 0
            self.max_in_flight = 0

        async def get_text(self, url: str, params: object = None) -> str:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            await asyncio.sleep(0)
            self.in_flight -= 1
            return ""

    transport = _CountingTransport()
    factory = feed_provider_factory(
        Provider.SPOT,
        url_for=lambda account: f"https://feed.test/{account.account}",
        parse=lambda body: [],
    )
    provider = factory(transport, LiveTrackConfig(fetch_concurrency=2))  # type: ignore[arg-type]

    fetched = await provider.fetch(
        [DueAccount(entity_id=i, account=f"feed-{i}", updated=0) for i in range(1, 6)]
    )

    assert sorted(fetched) == [1, 2, 3, 4, 5]
    assert transport.max_in_flight == 2


@pytest.mark.asyncio
async def test_snapshot_for_picks_group_by_client_age() -> None:
    cache = MemorySnapshotCache()
    await cache.set(KEY_FULL_PROTO, b"full")
    await cache.set(KEY_INCREMENTAL_PROTO, b"inc")

    async with _service(MemoryDocumentStore(), cache, _SpotProvider()) as service:
        assert await service.snapshot_for(NOW - 120) == b"inc"
        assert await service.snapshot_for(NOW - 3600 + 61) == b"inc"
        assert await service.snapshot_for(NOW - 3600 + 60) == b"full"
        assert await service.snapshot_for() == b"full"

    assert await cache.get(KEY_REQUEST_TIMESTAMP) == NOW


@pytest.mark.asyncio
async def test_snapshot_for_before_first_publish() -> None:
    async with _service(MemoryDocumentStore(), MemorySnapshotCache(), _SpotProvider()) as service:
        assert await service.snapshot_for() is None


@pytest.mark.asyncio
async def test_provider_factories_share_external_session() -> None:
    class _Session:
        closed = False

        async def close(self) -> None:
            self.closed = True

    session = _Session()
    feed_factory = feed_provider_factory(
        Provider.SPOT,
        url_for=lambda account: f"https://feed.test/{account.account}",
        parse=lambda body: [],
    )

    def spot_factory(transport: Transport, config: LiveTrackConfig) -> TrackerProvider:
        assert isinstance(transport, HttpTransport)
        return feed_factory(transport, config)

    service = LiveTrackService(
        LiveTrackConfig(fetch_concurrency=2),
        MemoryDocumentStore(),
        MemorySnapshotCache(),
        provider_factories=[spot_factory],
        session=session,  # type: ignore[arg-type]
        clock=lambda: NOW,
    )
    async with service:
        result = await service.refresh(force=True)

    assert result is not None
    assert [outcome.provider for outcome in result.outcomes] == [Provider.SPOT]
    assert session.closed is False


@pytest.mark.asyncio
async def test_post_process_failures_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    processed: list[int] = []

    async def failing(entity_id: int) -> None:
        processed.append(entity_id)
        raise RuntimeError("boom")

    service = LiveTrackService(
        LiveTrackConfig(), MemoryDocumentStore(), MemorySnapshotCache(), post_processor=failing
    )

    with caplog.at_level(logging.ERROR):
        await service.post_process(12)

    assert processed == [12]
    assert "Error processing id = 12" in caplog.text


# ------------------------------------------------------------------
# Configuration and feed models
# ------------------------------------------------------------------


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LIVETRACK_BATCH_SIZE", "50")
    monkeypatch.setenv("LIVETRACK_REQUEST_FRESHNESS_SEC", "120.5")
    monkeypatch.setenv("LIVETRACK_SPOT_ENABLED", "off")
    monkeypatch.setenv("LIVETRACK_INREACH_BATCH_LIMIT", "7")

    config = LiveTrackConfig.from_env(max_attempts=5)

    assert config.batch_size == 50
    assert config.request_freshness_sec == 120.5
    assert config.max_attempts == 5
    assert config.provider(Provider.SPOT).enabled is False
    assert config.provider(Provider.INREACH).batch_limit == 7
    assert config.provider(Provider.INREACH).interval_sec == 120.0
    assert config.provider(Provider.NONE).enabled is False


def test_config_from_env_rejects_bad_number(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LIVETRACK_RETENTION_SEC", "a day")

    with pytest.raises(LiveTrackConfigError, match="LIVETRACK_RETENTION_SEC"):
        LiveTrackConfig.from_env()


def test_config_rejects_incremental_longer_than_retention() -> None:
    with pytest.raises(LiveTrackConfigError):
        LiveTrackConfig(retention_sec=600, incremental_sec=3600)


def test_live_point_parses_feed_payload() -> None:
    point = LivePoint.model_validate(
        {
            "latitude": "45.5",
            "lng": 6.25,
            "elevation": "--",
            "time": 1_700_000_000,
            "lowBattery": "true",
            "emergency": 0,
            "message": "",
            "vendorField": "kept in raw",
        }
    )

    assert (point.lat, point.lon, point.alt) == (45.5, 6.25, 0.0)
    assert point.timestamp == 1_700_000_000_000
    assert point.low_battery is True
    assert point.emergency is False
    assert point.valid is None
    assert point.message is None
    assert point.raw["vendorField"] == "kept in raw"


def test_unknown_provider_value_maps_to_none() -> None:
    assert Provider(42) is Provider.NONE
