"""AT Protocol XRPC endpoints, protocol limits and retry defaults."""

# Default PDS
DEFAULT_PDS_URL = "https://bsky.social"

# XRPC endpoints (relative to the PDS base URL)
CREATE_SESSION_PATH = "/xrpc/com.atproto.server.createSession"
LIST_RECORDS_PATH = "/xrpc/com.atproto.repo.listRecords"
APPLY_WRITES_PATH = "/xrpc/com.atproto.repo.applyWrites"
DELETE_RECORD_PATH = "/xrpc/com.atproto.repo.deleteRecord"

# Write operation discriminators
APPLY_WRITES_CREATE = "com.atproto.repo.applyWrites#create"

# Protocol limits
MAX_APPLY_WRITES_OPS = 10  # hard ceiling on operations per applyWrites call
MAX_LIST_RECORDS_LIMIT = 100

# Retry defaults
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 1.0  # seconds
DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds
