"""Custom exception classes for the chunk vault."""


class VaultException(Exception):
    """
    Base exception class for all vault-related errors.
    """
    pass


class ConfigurationError(VaultException):
    """
    Raised when a required setting (webhook URL, proxy base) is missing.
    """
    pass


class InvalidArgumentError(VaultException):
    """
    Raised when an operation receives an unusable argument (e.g. chunk size 0).
    """
    pass


class VaultIOError(VaultException):
    """
    Raised when a local file cannot be read or written.
    """
    pass


class CatalogError(VaultException):
    """
    Raised when the catalog database cannot be opened, queried or written.
    """
    pass


class NotFoundError(VaultException):
    """
    Raised when a file identifier has no catalog entry.
    """
    pass


class NetworkError(VaultException):
    """
    Raised when a request to the webhook or the proxy fails at transport level.
    """
    pass


class RateLimitedError(NetworkError):
    """
    Raised internally when the endpoint answers HTTP 429.

    Always handled by the retry loop; never surfaces to callers.
    """

    def __init__(self, message: str, retry_after: float = None):
        super().__init__(message)
        self.retry_after = retry_after


class UploadExhaustedError(VaultException):
    """
    Raised when a chunk upload fails permanently after its retry budget.
    """

    def __init__(self, index: int, message: str):
        super().__init__(f"chunk {index}: {message}")
        self.index = index


class UploadResponseError(UploadExhaustedError):
    """
    Raised when the endpoint accepts an upload but the body lacks a locator.
    """
    pass


class IntegrityMismatchError(VaultException):
    """
    Raised when a chunk payload does not match its stored digest.
    """

    def __init__(self, index: int, expected: str, actual: str):
        super().__init__(f"chunk {index}: digest mismatch (stored={expected}, calc={actual})")
        self.index = index
        self.expected = expected
        self.actual = actual


class IngestionError(VaultException):
    """
    Raised when a file cannot be fully ingested into the catalog.
    """

    def __init__(self, message: str, file_id: int = None, failed_indices=None):
        super().__init__(message)
        self.file_id = file_id
        self.failed_indices = list(failed_indices or [])


class IngestionCancelledError(IngestionError):
    """
    Raised when an ingestion is cancelled before every chunk was uploaded.
    """
    pass
