"""Project-wide constants (chunk size, upload pacing, retry budgets)."""

DEFAULT_CHUNK_SIZE_BYTES: int = 2_000_000  # 2 MB (decimal), fits the attachment size cap

UPLOAD_BATCH_SIZE: int = 3

# Pause after every upload before the worker slot is reused
UPLOAD_THROTTLE_MIN_SECONDS: float = 2.0
UPLOAD_THROTTLE_MAX_SECONDS: float = 6.0

# Transport failures: attempts in total, backoff is 2 ** attempt
TRANSPORT_MAX_ATTEMPTS: int = 5
TRANSPORT_BACKOFF_BASE: int = 2

# HTTP 429 waits, retried without an attempt cap
RATE_LIMIT_MIN_SECONDS: float = 5.0
RATE_LIMIT_MAX_SECONDS: float = 15.0

HTTP_TIMEOUT_SECONDS: float = 60.0

STAGED_CHUNK_SUFFIX: str = ".chunk"
