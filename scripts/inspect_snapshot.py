#!/usr/bin/env python3
"""Decode a snapshot blob and print what it contains.

Accepts a track group (the default), a meta message of groups or a stored
canonical track.

Usage
-----
    python scripts/inspect_snapshot.py full.bin
    python scripts/inspect_snapshot.py --fixes inc.bin
    python scripts/inspect_snapshot.py --track entity-42.bin
    python scripts/inspect_snapshot.py --meta batch.bin
"""

from __future__ import annotations

import argparse
import sys
from datetime import UTC, datetime
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from livetrack._codec.flags import decode_flags  # noqa: E402
from livetrack._codec.wire import decode_meta, decode_track, decode_track_group  # noqa: E402
from livetrack.exceptions import TrackDecodeError  # noqa: E402
from livetrack.models.track import LiveTrack  # noqa: E402


def _fmt_time(seconds: int | None) -> str:
    if seconds is None:
        return "-"
    return datetime.fromtimestamp(seconds, tz=UTC).strftime("%Y-%m-%d %H:%M:%S")


def _print_track(track: LiveTrack, *, fixes: bool) -> None:
    first = track.time_sec[0] if track.time_sec else None
    span = f"{_fmt_time(first)} .. {_fmt_time(track.last_time_sec)}"
    print(f"  #{track.id:<8} {track.name[:30]:<30} {track.size:>5} fixes  {span}")
    if not fixes:
        return
    for index in range(track.size):
        flags = decode_flags(track.flags[index])
        marks = "".join(
            mark
            for mark, on in (("!", flags.emergency), ("b", flags.low_battery), ("?", not flags.valid))
            if on
        )
        extra = track.extra.get(index)
        note = f"  {extra.speed or ''} {extra.message or ''}".rstrip() if extra else ""
        print(
            f"    {_fmt_time(track.time_sec[index])}  {track.lat[index]:>10.5f} {track.lon[index]:>10.5f}"
            f" {track.alt[index]:>6}m  {flags.device.display_name:<8} {marks:<3}{note}"
        )


def _print_group(blob: bytes, *, fixes: bool, label: str = "") -> None:
    tracks, incremental = decode_track_group(blob)
    kind = "incremental" if incremental else "full"
    print(f"{label}{kind} group, {len(tracks)} track(s), {len(blob)} bytes")
    for track in tracks:
        _print_track(track, fixes=fixes)


def main() -> None:
    parser = argparse.ArgumentParser(description="Inspect a livetrack snapshot blob.")
    parser.add_argument("path", help="Blob file")
    parser.add_argument("--track", action="store_true", help="The file holds a single canonical track")
    parser.add_argument("--meta", action="store_true", help="The file holds a meta message of groups")
    parser.add_argument("--fixes", action="store_true", help="List every fix")
    args = parser.parse_args()

    blob = Path(args.path).read_bytes()

    try:
        if args.track:
            track = decode_track(blob)
            print(f"canonical track, {len(blob)} bytes")
            _print_track(track, fixes=args.fixes)
        elif args.meta:
            groups = decode_meta(blob)
            print(f"meta, {len(groups)} group(s)")
            for index, group in enumerate(groups):
                _print_group(group, fixes=args.fixes, label=f"[{index}] ")
        else:
            _print_group(blob, fixes=args.fixes)
    except TrackDecodeError as exc:
        print(f"Cannot decode {args.path}: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
