"""Error taxonomy shared by the upstream clients and the resolution services."""

from typing import Any, Optional


class ExplorerError(Exception):
    """Base class for every error raised while answering a request."""

    code = "EXPLORER_ERROR"


class TransportError(ExplorerError):
    """Connection failure or timeout reaching the node or the indexer."""

    code = "UPSTREAM_UNAVAILABLE"

    def __init__(self, message: str, upstream: str = "unknown"):
        super().__init__(message)
        self.upstream = upstream


class ProtocolError(ExplorerError):
    """An upstream answered with an explicit error object."""

    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, rpc_code: Optional[int] = None,
                 upstream: str = "unknown", data: Any = None):
        super().__init__(message)
        self.rpc_code = rpc_code
        self.upstream = upstream
        self.data = data


class NotFoundError(ProtocolError):
    """The requested transaction, block or address data does not exist upstream."""

    code = "NOT_FOUND"


class MissingResultError(ExplorerError):
    """A response carried neither an error object nor a result."""

    code = "MISSING_RESULT"

    def __init__(self, message: str, upstream: str = "unknown"):
        super().__init__(message)
        self.upstream = upstream


class ValidationError(ExplorerError):
    """Malformed address, txid or output index."""

    code = "VALIDATION_ERROR"


class WorkerFailure(ExplorerError):
    """A worker running a blocking indexer call crashed or was refused."""

    code = "WORKER_FAILURE"
