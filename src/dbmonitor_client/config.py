from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, TypeAlias

QueueState: TypeAlias = Literal["idle", "running", "draining", "done"]

DEFAULT_SERVER = "localhost"
DEFAULT_PORT = "8080"
DEFAULT_API_PATH = "/api/1.0/"

DEFAULT_CALL_TIMEOUT_MS = 20_000
DEFAULT_TEST_TIMEOUT_MS = 5_000
DEFAULT_CHECK_TIMEOUT_MS = 60_000

# Processes whose metadata keys would otherwise collide across dashboard views.
SUFFIXED_METADATA_PROCESSES = frozenset(
    {"GRAPH_MEMORY", "GRAPH_TRANSACTION", "TABLE_INFORMATION"}
)


@dataclass(frozen=True)
class ClientOptions:
    call_timeout_ms: int = DEFAULT_CALL_TIMEOUT_MS
    test_timeout_ms: int = DEFAULT_TEST_TIMEOUT_MS
    check_timeout_ms: int = DEFAULT_CHECK_TIMEOUT_MS
    scheme: str = "http"
    api_path: str = DEFAULT_API_PATH


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Endpoint and credential fields a connection is built from.

    ``password`` holds either a clear-text or an already hashed password,
    depending on ``is_hashed_password``.
    """

    server: str | None = None
    port: str | int | None = None
    admin: bool | str = False
    user: str | None = None
    password: str | None = None
    is_hashed_password: bool = False
    process: str | None = None


@dataclass(frozen=True)
class ProcedureCommand:
    procedure: str
    parameter: Any
    value: Any = None

    @property
    def parameters(self) -> Any:
        if self.value is None:
            return self.parameter
        return [self.parameter, self.value]
