"""Internal constants shared across the library."""

USER_AGENT = "attendsync/1"

#: Durable storage keys, one blob per piece of engine state.
RECORDS_KEY = "attendance-storage-standard-v1"
TOMBSTONES_KEY = "attendance-deleted-ids-v1"
ENDPOINT_URL_KEY = "attendance-script-url-v21"
QUEUE_KEY = "attendance-sync-queue-v2"

#: Envelope ``result`` value the remote store uses to acknowledge a write.
WRITE_RESULT_SUCCESS = "success"

#: Query parameters of the snapshot read call.
READ_ACTION = "read"
CACHE_BUST_PARAM = "_"

TEST_DISPLAY_NAME = "TEST STUDENT"
TEST_ID_PREFIX = "TEST-"
TEST_EMAIL_DOMAIN = "EXAMPLE.COM"


def is_valid_endpoint(url: str | None) -> bool:
    """Return ``True`` when *url* looks like a usable http(s) endpoint."""
    if not url:
        return False
    scheme, sep, rest = url.strip().partition("://")
    return bool(sep) and scheme.lower() in ("http", "https") and bool(rest.strip("/"))
