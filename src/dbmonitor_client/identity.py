from __future__ import annotations

import re
from typing import Any

from .config import DEFAULT_PORT, DEFAULT_SERVER

_NON_KEY_CHARS = re.compile(r"[^_a-zA-Z0-9]")


def normalize_server(server: Any) -> str:
    return DEFAULT_SERVER if server is None else str(server).strip()


def normalize_port(port: Any) -> str:
    return DEFAULT_PORT if port is None else str(port).strip()


def normalize_admin(admin: Any) -> bool:
    return admin is True or admin == "true"


def normalize_user(user: str | None) -> str | None:
    if user is None or user in ("", "null"):
        return None
    return user


def build_key(
    server: Any,
    port: Any,
    admin: Any,
    user: str | None,
    process: str | None,
) -> str:
    """Canonical identity of a connection.

    Descriptors that differ only in characters outside ``[A-Za-z0-9_]``
    collapse onto the same key.
    """
    user = normalize_user(user)
    raw = "_".join((
        normalize_server(server),
        normalize_port(port),
        user or "",
        "Admin" if normalize_admin(admin) else "",
        process or "",
    ))
    return _NON_KEY_CHARS.sub("_", raw)


def build_display(
    server: Any, port: Any, admin: Any, user: str | None
) -> str:
    display = f"{normalize_server(server)}:{normalize_port(port)}"
    user = normalize_user(user)
    if user:
        display += f" ({user})"
    if normalize_admin(admin):
        display += " - Admin"
    return display
