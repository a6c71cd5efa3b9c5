from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Sequence
from urllib.parse import quote

from ..errors import EncodingError

ProcedureSignatures = Mapping[str, Mapping[str, Sequence[str]]]

NUMERIC_TYPES = frozenset(
    {"tinyint", "smallint", "int", "integer", "bigint", "float"}
)
TRUTHY_BITS = frozenset({"'true'", "true", "'yes'", "yes", "1"})

SNAPSHOT_DELETE = "@SnapshotDelete"

BUILTIN_PROCEDURES: ProcedureSignatures = MappingProxyType({
    "@AdHoc": {"1": ("varchar",)},
    "@Explain": {"1": ("varchar",)},
    "@ExplainProc": {"1": ("varchar",)},
    "@Pause": {"0": ()},
    "@Promote": {"0": ()},
    "@Quiesce": {"0": ()},
    "@Resume": {"0": ()},
    "@Shutdown": {"0": ()},
    "@SnapshotDelete": {"2": ("varchar", "varchar")},
    "@SnapshotRestore": {"1": ("varchar",), "2": ("varchar", "varchar")},
    "@SnapshotSave": {"3": ("varchar", "varchar", "bit"), "1": ("varchar",)},
    "@SnapshotScan": {"1": ("varchar",)},
    "@SnapshotStatus": {"0": ()},
    "@Statistics": {"2": ("StatisticsComponent", "bit")},
    "@SystemCatalog": {"1": ("CatalogComponent",)},
    "@SystemInformation": {"1": ("SysInfoSelector",)},
    "@UpdateApplicationCatalog": {"2": ("varchar", "varchar")},
    "@UpdateLogging": {"1": ("xml",)},
    "@ValidatePartitioning": {"2": ("int", "varbinary")},
    "@GetPartitionKeys": {"1": ("varchar",)},
    "@GC": {"0": ()},
    "@StopNode": {"1": ("int",)},
})

# Human-readable sysproc reference shown by the dashboard's query page.
SYSPROC_DESCRIPTIONS: Mapping[str, Mapping[str, Sequence[str]]] = MappingProxyType({
    "@Explain": {"1": ("SQL (varchar)", "Returns Table[]")},
    "@ExplainProc": {"1": ("Stored Procedure Name (varchar)", "Returns Table[]")},
    "@Pause": {"0": ("Returns bit",)},
    "@Quiesce": {"0": ("Returns bit",)},
    "@Resume": {"0": ("Returns bit",)},
    "@Shutdown": {"0": ("Returns bit",)},
    "@SnapshotDelete": {
        "2": ("DirectoryPath (varchar)", "UniqueId (varchar)", "Returns Table[]"),
    },
    "@SnapshotRestore": {
        "2": ("DirectoryPath (varchar)", "UniqueId (varchar)", "Returns Table[]"),
        "1": ("JSON (varchar)", "Returns Table[]"),
    },
    "@SnapshotSave": {
        "3": (
            "DirectoryPath (varchar)",
            "UniqueId (varchar)",
            "Blocking (bit)",
            "Returns Table[]",
        ),
        "1": ("JSON (varchar)", "Returns Table[]"),
    },
    "@SnapshotScan": {"1": ("DirectoryPath (varchar)", "Returns Table[]")},
    "@SnapshotStatus": {"0": ("Returns Table[]",)},
    "@Statistics": {
        "2": ("Statistic (StatisticsComponent)", "Interval (bit)", "Returns Table[]"),
    },
    "@SystemCatalog": {"1": ("SystemCatalog (CatalogComponent)", "Returns Table[]")},
    "@SystemInformation": {"1": ("Selector (SysInfoSelector)", "Returns Table[]")},
    "@UpdateApplicationCatalog": {
        "2": (
            "CatalogPath (varchar)",
            "DeploymentConfigPath (varchar)",
            "Returns Table[]",
        ),
    },
    "@UpdateLogging": {"1": ("Configuration (xml)", "Returns Table[]")},
    "@Promote": {"0": ("Returns bit",)},
    "@ValidatePartitioning": {
        "2": ("HashinatorType (int)", "Config (varbinary)", "Returns Table[]"),
    },
    "@GetPartitionKeys": {"1": ("VoltType (varchar)", "Returns Table[]")},
})

_EDGE_QUOTES = re.compile(r"\A'|'\Z")


@dataclass(frozen=True)
class Credentials:
    user: str | None = None
    password: str | None = None
    hashed_password: str | None = None
    admin: bool = False


@dataclass(frozen=True)
class EncodedCall:
    """A validated procedure call ready to hand to a transport."""

    procedure: str
    parameters: str
    fields: tuple[tuple[str, str], ...]

    @property
    def query(self) -> str:
        return "&".join(
            f"{quote(key, safe='')}={quote(value, safe='')}"
            for key, value in self.fields
        )


class ProcedureCatalog:
    """Validates procedure calls against known signatures and encodes them."""

    def __init__(self, signatures: ProcedureSignatures | None = None) -> None:
        self._signatures = (
            BUILTIN_PROCEDURES if signatures is None else signatures
        )

    @property
    def signatures(self) -> ProcedureSignatures:
        return self._signatures

    def __contains__(self, procedure: object) -> bool:
        return procedure in self._signatures

    def extend(self, signatures: ProcedureSignatures) -> ProcedureCatalog:
        """Return a new catalog with ``signatures`` layered over this one."""
        merged = {name: dict(arities) for name, arities in self._signatures.items()}
        for name, arities in signatures.items():
            merged.setdefault(name, {}).update(arities)
        return ProcedureCatalog(MappingProxyType(merged))

    def signature_for(
        self, procedure: str, parameters: Any
    ) -> Sequence[str] | EncodingError:
        if procedure not in self._signatures:
            return EncodingError(
                f'Procedure "{procedure}" is undefined.', procedure
            )

        arities = self._signatures[procedure]
        count = len(_as_list(parameters))
        signature = arities.get(str(count))
        if signature is None:
            expected = ", ".join(arities)
            return EncodingError(
                f'Invalid parameter count for procedure "{procedure}" '
                f"(received: {count}, expected: {expected})",
                procedure,
            )
        return signature

    def encode(
        self,
        procedure: str,
        parameters: Any,
        credentials: Credentials | None = None,
    ) -> EncodedCall | EncodingError:
        """Encode a call, or return an EncodingError when it does not match
        any known signature. Never raises for unknown calls."""
        signature = self.signature_for(procedure, parameters)
        if isinstance(signature, EncodingError):
            return signature

        values = _as_list(parameters)
        encoded = "[" + ",".join(
            format_parameter(procedure, type_tag, value)
            for type_tag, value in zip(signature, values)
        ) + "]"

        fields: list[tuple[str, str]] = [
            ("Procedure", procedure),
            ("Parameters", encoded),
        ]
        if credentials is not None:
            if credentials.user is not None:
                fields.append(("User", credentials.user))
            if credentials.password is not None:
                fields.append(("Password", credentials.password))
            if credentials.hashed_password is not None:
                fields.append(("Hashedpassword", credentials.hashed_password))
            if credentials.admin:
                fields.append(("admin", "true"))

        return EncodedCall(
            procedure=procedure, parameters=encoded, fields=tuple(fields)
        )


def format_parameter(procedure: str, type_tag: str, value: Any) -> str:
    """Format one positional parameter according to its declared type."""
    if type_tag in NUMERIC_TYPES or type_tag == "varbinary":
        return _literal(value)
    if type_tag == "decimal":
        return f'"{_literal(value)}"'
    if type_tag == "bit":
        return "1" if _is_truthy_bit(value) else "0"

    if procedure == SNAPSHOT_DELETE:
        return f'["{_unquote(_literal(value))}"]'
    if isinstance(value, str):
        return f'"{_unquote(value)}"'.replace("''", "'")
    return _literal(value)


def _is_truthy_bit(value: Any) -> bool:
    if isinstance(value, str):
        return value in TRUTHY_BITS
    # True == 1 as well
    return value == 1


def _unquote(value: str) -> str:
    return _EDGE_QUOTES.sub("", value)


def _literal(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _as_list(parameters: Any) -> list[Any]:
    if parameters is None:
        return []
    if isinstance(parameters, (list, tuple)):
        return list(parameters)
    return [parameters]
