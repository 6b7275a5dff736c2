"""Cache key derivation.

A key is ``{resource_type}-{scope values...}-{principal_hash}``, e.g.
``issues-octo-widgets-open-1f2e3d4c5b6a7980``. Scope values are ordered by
parameter name and percent-encoded (``-`` included) so the ``-`` separator
is never ambiguous. The principal hash is the first 16 hex characters of
SHA-256 over the access token; the raw token never appears in a key, a
filename, or a log line.

Keys longer than :data:`MAX_KEY_LENGTH` have their scope segment replaced
by a SHA-256 digest rather than being truncated, so two long scopes that
share a prefix still map to different keys. In both forms the resource type
is the first component and the principal hash the last, which is what lets
invalidation match on them.
"""

from __future__ import annotations

import enum
import hashlib
import re
from typing import Mapping, Optional, Union
from urllib.parse import quote

MAX_KEY_LENGTH = 128
"""Upper bound on the length of any derived key."""

PRINCIPAL_HASH_LENGTH = 16
SCOPE_DIGEST_LENGTH = 32

_RESOURCE_TYPE_RE = re.compile(r"[a-z0-9]{1,32}")

ResourceTypeLike = Union[str, enum.Enum]
Scope = Optional[Mapping[str, object]]


def validate_resource_type(resource_type: ResourceTypeLike) -> str:
    """Normalise *resource_type* to its string form.

    Raises:
        ValueError: If the resource type is not lowercase alphanumeric.
    """
    value = resource_type.value if isinstance(resource_type, enum.Enum) else resource_type
    if not isinstance(value, str) or not _RESOURCE_TYPE_RE.fullmatch(value):
        raise ValueError(
            f"Invalid resource type {value!r}: must be 1-32 lowercase alphanumeric characters"
        )
    return value


def hash_principal(token: str) -> str:
    """Return the fixed-width one-way digest used to scope entries to a caller."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:PRINCIPAL_HASH_LENGTH]


def _encode_value(value: object) -> str:
    # quote() leaves '-' alone; encode it so it stays a pure separator.
    return quote(str(value), safe="").replace("-", "%2D")


def _scope_segment(scope: Scope) -> str:
    if not scope:
        return ""
    return "-".join(_encode_value(scope[name]) for name in sorted(scope))


def build_principal_key(
    resource_type: ResourceTypeLike, scope: Scope, principal_hash: str
) -> str:
    """Build a key from an already-hashed principal.

    Used by invalidation, which receives tokens but matches on hashes.
    """
    rtype = validate_resource_type(resource_type)
    segment = _scope_segment(scope)
    parts = [rtype, segment, principal_hash] if segment else [rtype, principal_hash]
    key = "-".join(parts)
    if len(key) > MAX_KEY_LENGTH:
        digest = hashlib.sha256(segment.encode("utf-8")).hexdigest()[:SCOPE_DIGEST_LENGTH]
        key = f"{rtype}-{digest}-{principal_hash}"
    return key


def build_key(resource_type: ResourceTypeLike, scope: Scope, token: str) -> str:
    """Derive the cache key for *resource_type* and *scope* as seen by *token*.

    Args:
        resource_type: Resource type such as ``"issues"``.
        scope: Scope parameters, e.g. ``{"owner": "o", "repo": "r", "state": "open"}``.
            ``None`` or empty for unscoped resources.
        token: The caller's raw access token. Only its digest is used.

    Returns:
        A deterministic key of at most :data:`MAX_KEY_LENGTH` characters.
    """
    return build_principal_key(resource_type, scope, hash_principal(token))


def principal_of(key: str) -> str:
    """Return the principal hash embedded in *key*."""
    return key.rsplit("-", 1)[-1]


def resource_type_of(key: str) -> str:
    """Return the resource type embedded in *key*."""
    return key.split("-", 1)[0]
