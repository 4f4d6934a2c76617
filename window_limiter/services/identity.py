"""Identity resolution and history key scoping.

Every check is scoped to ``(namespace, identity, bucket)``. The identity comes
from a caller-supplied identifier (literal string or function of the request)
or from the host's default capability, typically the client address.
"""

from __future__ import annotations

from typing import Any, Callable
from urllib.parse import quote

from window_limiter.adapters.store.base import build_key
from window_limiter.core.errors import InvalidOptionError
from window_limiter.services.limits import DerivedIdentifier, Identifier, LiteralIdentifier


def resolve_identity(
    request: Any,
    identifier: Identifier | None,
    default: Callable[[Any], str] | None = None,
) -> str:
    """Derive the identity for one check.

    Args:
        request: Host request context handed to derived identifiers.
        identifier: Explicit identifier option, or None for the default.
        default: Host capability used when no identifier is configured.

    Returns:
        Non-empty identity string.

    Raises:
        InvalidOptionError: If no identity can be derived or it is empty.
    """
    if isinstance(identifier, LiteralIdentifier):
        identity = identifier.value
    elif isinstance(identifier, DerivedIdentifier):
        identity = identifier.func(request)
    elif identifier is None and default is not None:
        identity = default(request)
    else:
        raise InvalidOptionError(
            code="invalid_option",
            message="identifier must be a callable or a string",
            details={"option": "identifier"},
        )

    if not isinstance(identity, str) or not identity:
        raise InvalidOptionError(
            code="empty_identifier",
            message="identifier must resolve to a non-empty string",
            details={"option": "identifier"},
        )
    return identity


def escape_identity(identity: str) -> str:
    """Percent-encode an identity so it is a single key component.

    The key separator and glob metacharacters (``*?[]``) are all encoded, so an
    identity can neither split a key nor widen a match pattern.
    """
    return quote(identity, safe="")


def history_key(namespace: str, identity: str, bucket: str) -> str:
    """Return the key prefix under which an identity's bucket events live."""
    return build_key(namespace, escape_identity(identity), bucket)
