"""Internal constants shared across the library."""

USER_AGENT = "livetrack/1.0 (+https://github.com/livetrack)"

# ------------------------------------------------------------------
# Track windows (seconds)
# ------------------------------------------------------------------

#: Fixes older than this are dropped from canonical tracks on every merge.
LIVE_RETENTION_SEC = 24 * 3600
#: Age threshold of the "what changed recently" snapshot.
INCREMENTAL_UPDATE_SEC = 3600
#: Clients that fetched within the incremental window minus this margin get
#: the incremental snapshot.
INCREMENTAL_MARGIN_SEC = 60
#: A refresh only runs when a client asked for data within this window.
REQUEST_FRESHNESS_SEC = 10 * 60

# ------------------------------------------------------------------
# Persistence
# ------------------------------------------------------------------

SAVE_BATCH_SIZE = 20
SAVE_MAX_ATTEMPTS = 3

# ------------------------------------------------------------------
# Errors/requests tally: 3 upper digits errors, 3 lower digits requests.
# ------------------------------------------------------------------

TALLY_BASE = 1000

# ------------------------------------------------------------------
# Cache keys
# ------------------------------------------------------------------

KEY_REQUEST_TIMESTAMP = "tracker:request:time"
KEY_FULL_PROTO = "tracker:proto:full"
KEY_FULL_SIZE = "tracker:proto:full:size"
KEY_INCREMENTAL_PROTO = "tracker:proto:inc"
KEY_INCREMENTAL_SIZE = "tracker:proto:inc:size"
KEY_UPDATE_SEC = "tracker:update:time"
KEY_LOG_ERRORS = "tracker:log:{name}:errors"
KEY_LOG_ERRORS_BY_ID = "tracker:log:{name}:errors:id"
KEY_LOG_SIZE = "tracker:log:{name}:size"
KEY_LOG_TIME = "tracker:log:{name}:time"
KEY_LOG_DURATION = "tracker:log:{name}:duration"

LOG_CAPACITY = 10
LOG_MAX_LENGTH = 1000
