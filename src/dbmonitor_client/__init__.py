from .bootstrap import (
    compile_procedure_commands,
    load_connection_metadata,
    metadata_key,
)
from .config import (
    ClientOptions,
    ConnectionDescriptor,
    ProcedureCommand,
    QueueState,
)
from .connection import Connection
from .errors import (
    DbMonitorError,
    EncodingError,
    ProcedureCallError,
    RequestTimeoutError,
    TransportClosedError,
)
from .identity import build_display, build_key
from .protocol.catalog import (
    BUILTIN_PROCEDURES,
    SYSPROC_DESCRIPTIONS,
    Credentials,
    EncodedCall,
    ProcedureCatalog,
)
from .protocol.execution_queue import ExecutionQueue
from .protocol.guarded_callback import GuardedCallback
from .protocol.response import failure_response, is_success
from .registry import ConnectionRegistry
from .transport.http import HttpTransport

__all__ = [
    "ConnectionRegistry",
    "Connection",
    "ExecutionQueue",
    "GuardedCallback",
    "HttpTransport",
    "ProcedureCatalog",
    "EncodedCall",
    "Credentials",
    "BUILTIN_PROCEDURES",
    "SYSPROC_DESCRIPTIONS",
    "ClientOptions",
    "ConnectionDescriptor",
    "ProcedureCommand",
    "QueueState",
    "build_key",
    "build_display",
    "compile_procedure_commands",
    "load_connection_metadata",
    "metadata_key",
    "failure_response",
    "is_success",
    "DbMonitorError",
    "EncodingError",
    "ProcedureCallError",
    "RequestTimeoutError",
    "TransportClosedError",
]
