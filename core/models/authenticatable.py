"""Authentication capabilities a user model can participate in.

The auth flows in :mod:`webapp.auth` talk to the user model only through
:class:`AuthenticatedEntity`.  Which capabilities are switched on is decided
once, when the application is built, from the ``AUTH_BUILD_TARGET`` and
``AUTH_CAPABILITIES`` settings: the ``server`` build carries the full set,
the ``client`` build (the model as shipped to the browser-side UI engine)
carries none of the credential behaviour.
"""

from __future__ import annotations

import enum
from typing import Iterable, Optional, Protocol, runtime_checkable


class Capability(str, enum.Enum):
    DATABASE_AUTHENTICATABLE = "database_authenticatable"
    REGISTERABLE = "registerable"
    RECOVERABLE = "recoverable"
    REMEMBERABLE = "rememberable"
    TRACKABLE = "trackable"
    VALIDATABLE = "validatable"


SERVER_CAPABILITIES: frozenset[Capability] = frozenset(Capability)
CLIENT_CAPABILITIES: frozenset[Capability] = frozenset()

BUILD_TARGETS: dict[str, frozenset[Capability]] = {
    "server": SERVER_CAPABILITIES,
    "client": CLIENT_CAPABILITIES,
}


@runtime_checkable
class AuthenticatedEntity(Protocol):
    """Interface the authentication flows rely on."""

    email: Optional[str]

    @property
    def is_active(self) -> bool: ...

    @property
    def persisted(self) -> bool: ...

    def get_id(self) -> Optional[str]: ...

    def set_password(self, raw: str) -> None: ...

    def check_password(self, raw: str) -> bool: ...


def resolve_capabilities(
    build_target: str,
    names: Optional[Iterable[str]] = None,
    supported: Iterable[Capability] = SERVER_CAPABILITIES,
) -> frozenset[Capability]:
    """Return the capability set enabled for *build_target*.

    ``names`` narrows the build target's set to an explicit list; ``supported``
    is what the model type implements.  Unknown targets or names raise
    :class:`ValueError` so a misconfigured application fails at startup.
    """

    target = (build_target or "").strip().lower()
    if target not in BUILD_TARGETS:
        raise ValueError(f"Unknown AUTH_BUILD_TARGET: {build_target!r}")

    enabled = BUILD_TARGETS[target]
    if names is not None:
        requested = set()
        for name in names:
            try:
                requested.add(Capability(str(name).strip().lower()))
            except ValueError:
                raise ValueError(f"Unknown authentication capability: {name!r}") from None
        enabled = enabled & frozenset(requested)

    return frozenset(enabled) & frozenset(supported)


__all__ = [
    "AuthenticatedEntity",
    "BUILD_TARGETS",
    "CLIENT_CAPABILITIES",
    "Capability",
    "SERVER_CAPABILITIES",
    "resolve_capabilities",
]
