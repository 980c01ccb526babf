"""Rolling error/request counters packed into one integer.

The value has 3 upper digits for the errors and 3 lower digits for the
requests: ``5230`` means 5 errors over 230 requests. When either counter
would overflow, both are halved first so that long-running accounts keep a
proportional error rate instead of saturating.
"""

from __future__ import annotations

from livetrack._constants import TALLY_BASE


def split_tally(tally: int | None) -> tuple[int, int]:
    """Return ``(errors, requests)``."""
    errors, requests = divmod(tally or 0, TALLY_BASE)
    return errors, requests


def increment_requests(tally: int | None, *, is_error: bool) -> int:
    errors, requests = split_tally(tally)
    if requests + 1 >= TALLY_BASE or (is_error and errors + 1 >= TALLY_BASE):
        errors //= 2
        requests //= 2
    requests += 1
    if is_error:
        errors += 1
    return errors * TALLY_BASE + requests


def error_rate(tally: int | None) -> float:
    errors, requests = split_tally(tally)
    return errors / requests if requests else 0.0
