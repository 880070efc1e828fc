"""Exception hierarchy for the dump pipeline.

Every error carries the pipeline stage it belongs to so the CLI can report
where a run stopped.
"""


class EtcdDumpError(Exception):
    """Base class for all dump errors."""

    stage = "dump"

    def describe(self) -> str:
        """Return a one-line diagnostic including the stage."""
        return f"{self.stage}: {self}"


class ConfigError(EtcdDumpError):
    """Raised when command-line input is invalid."""

    stage = "cli parsing"


class LimitAdjustmentError(EtcdDumpError):
    """Raised when the open-file limit cannot be raised."""

    stage = "limit adjustment"


class LimitQueryError(LimitAdjustmentError):
    """Raised when the current open-file limit cannot be read."""


class LimitSetError(LimitAdjustmentError):
    """Raised when the platform refuses the new open-file limit."""


class DecoderLaunchError(EtcdDumpError):
    """Raised when the decoder subprocess cannot be started."""

    stage = "decoder launch"


class DecoderCallError(EtcdDumpError):
    """Raised when a request to the decoder fails."""

    stage = "decode"


class DecodeServiceUnavailable(DecoderCallError):  # noqa: N818
    """Raised when the decoder cannot be reached."""


class DecodeServiceError(DecoderCallError):
    """Raised when the decoder answers with a non-success status."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class DecodeProtocolError(DecoderCallError):
    """Raised when the decoder response is malformed."""


class StoreConnectionError(EtcdDumpError):
    """Raised when the store cannot be reached."""

    stage = "store connection"


class StoreUnavailable(StoreConnectionError):  # noqa: N818
    """Raised when the store connection drops during an operation."""


class StoreOperationError(EtcdDumpError):
    """Raised when a list or get request fails."""

    stage = "store operation"


class KeyDecodeError(StoreOperationError):
    """Raised when a store key is not valid UTF-8."""

    def __init__(self, message: str, raw_key: bytes):
        super().__init__(message)
        self.raw_key = raw_key


class FilesystemError(EtcdDumpError):
    """Raised when a decoded value cannot be written to disk."""

    stage = "materialize"

    def __init__(self, message: str, key: str):
        super().__init__(message)
        self.key = key


class KeySnapshotError(EtcdDumpError):
    """Raised when the fetch, decode or write of a single key fails."""

    def __init__(self, key: str, cause: Exception):
        super().__init__(f"{cause.__class__.__name__}: {cause}")
        self.key = key
        self.cause = cause

    @property
    def stage(self) -> str:  # type: ignore[override]
        cause_stage = getattr(self.cause, "stage", "unexpected error")
        return f"dump of key {self.key} ({cause_stage})"
