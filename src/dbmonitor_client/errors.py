from __future__ import annotations


class DbMonitorError(Exception):
    """Base error for all dbmonitor client errors."""

    def __init__(self, code: str, message: str, details: object = None) -> None:
        super().__init__(message)
        self.code = code
        self.details = details

    @property
    def message(self) -> str:
        return str(self)


class EncodingError(DbMonitorError):
    """Unknown procedure or unsupported parameter count.

    Returned (not raised) by the procedure catalog so callers can turn it
    into a failure response before anything touches the network.
    """

    def __init__(self, message: str, procedure: str | None = None) -> None:
        super().__init__("ENCODING", message, procedure)
        self.procedure = procedure


class RequestTimeoutError(DbMonitorError):
    """Procedure call timed out waiting for a server response."""

    def __init__(self, message: str = "Query timeout.") -> None:
        super().__init__("TIMEOUT", message)


class ProcedureCallError(DbMonitorError):
    """Server answered a procedure call with a non-success status."""

    def __init__(self, procedure: str, response: dict) -> None:
        super().__init__(
            "PROCEDURE",
            f"{procedure} failed with status {response.get('status')}: "
            f"{response.get('statusstring')}",
            response,
        )
        self.procedure = procedure
        self.response = response


class TransportClosedError(DbMonitorError):
    """Transport was closed before the call could be sent."""

    def __init__(self, message: str = "Transport is closed") -> None:
        super().__init__("DISCONNECTED", message)
