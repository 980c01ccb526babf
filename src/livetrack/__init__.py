"""livetrack - Aggregate provider position reports into canonical live tracks."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("livetrack")
except PackageNotFoundError:
    __version__ = "0+local"
from livetrack._cache import MemorySnapshotCache, SnapshotCache
from livetrack.config import LiveTrackConfig, ProviderSettings
from livetrack.exceptions import (
    LiveTrackConfigError,
    LiveTrackError,
    LiveTrackParseError,
    LiveTrackProviderError,
    LiveTrackStoreError,
    LiveTrackTransportError,
    TrackDecodeError,
    TrackEncodingError,
)
from livetrack.ingestion.fetch import FetchCoordinator, FetchOutcome
from livetrack.ingestion.providers import FeedProvider, TrackerProvider
from livetrack.models import (
    AccountFetch,
    DueAccount,
    FixExtra,
    FixFlags,
    LivePoint,
    LiveTrack,
    LiveTrackEntity,
    Provider,
    TrackerAccount,
    TrackerUpdate,
    TrackUpdate,
)
from livetrack.service import LiveTrackService, RefreshResult, feed_provider_factory
from livetrack.snapshot import SnapshotBuilder, Snapshots
from livetrack.state.persist import PersistenceCoordinator, PersistResult
from livetrack.state.store import DocumentStore, MemoryDocumentStore

__all__ = [
    "__version__",
    "AccountFetch",
    "DocumentStore",
    "DueAccount",
    "FeedProvider",
    "FetchCoordinator",
    "FetchOutcome",
    "FixExtra",
    "FixFlags",
    "LivePoint",
    "LiveTrack",
    "LiveTrackConfig",
    "LiveTrackConfigError",
    "LiveTrackEntity",
    "LiveTrackError",
    "LiveTrackParseError",
    "LiveTrackProviderError",
    "LiveTrackService",
    "LiveTrackStoreError",
    "LiveTrackTransportError",
    "MemoryDocumentStore",
    "MemorySnapshotCache",
    "PersistResult",
    "PersistenceCoordinator",
    "Provider",
    "ProviderSettings",
    "RefreshResult",
    "SnapshotBuilder",
    "SnapshotCache",
    "Snapshots",
    "TrackDecodeError",
    "TrackEncodingError",
    "TrackUpdate",
    "TrackerAccount",
    "TrackerProvider",
    "TrackerUpdate",
    "feed_provider_factory",
]
