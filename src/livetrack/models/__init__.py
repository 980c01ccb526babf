"""Data models for live tracks, entities and provider updates."""

from livetrack.models._base import FeedBaseModel, FeedEnum
from livetrack.models.entity import LiveTrackEntity, TrackerAccount
from livetrack.models.fix import TRACKER_PROVIDERS, FixExtra, FixFlags, LivePoint, Provider
from livetrack.models.track import LiveTrack
from livetrack.models.update import AccountCorrection, AccountFetch, DueAccount, TrackerUpdate, TrackUpdate

__all__ = [
    "AccountCorrection",
    "AccountFetch",
    "DueAccount",
    "FeedBaseModel",
    "FeedEnum",
    "FixExtra",
    "FixFlags",
    "LivePoint",
    "LiveTrack",
    "LiveTrackEntity",
    "Provider",
    "TRACKER_PROVIDERS",
    "TrackUpdate",
    "TrackerAccount",
    "TrackerUpdate",
]
