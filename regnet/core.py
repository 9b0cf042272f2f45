"""
Core types and pure functions for the property registration network.

This module provides the foundational pieces every other module builds on:
1. Constants: key namespaces, property statuses, the top-up code table
2. Enums: ExecuteResult (commit outcome) and ErrorKind (failure taxonomy)
3. Exceptions: RegistryError and one subclass per ErrorKind
4. Key codec: create_composite_key / split_composite_key and CompositeKey
5. Invocation types: InvocationContext, StateWrite, RegistryConfig
6. Protocols: StateStub, the invocation-scoped store interface contracts use

Nothing in this module touches stored state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import hashlib
from types import MappingProxyType
from typing import (
    Any, Dict, Iterator, Mapping, Optional, Protocol, Sequence, Tuple,
    runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Key namespaces. Each entity kind lives in its own partition of the key space.
NAMESPACE_REQUEST = "request"
NAMESPACE_USER = "user"
NAMESPACE_PROPERTY = "property"
NAMESPACE_PROPERTY_REQUEST = "propertyRequest"

# Property statuses (closed set).
STATUS_REGISTERED = "registered"
STATUS_ON_SALE = "onSale"
PROPERTY_STATUSES = frozenset({STATUS_REGISTERED, STATUS_ON_SALE})

# Bank transaction codes accepted by rechargeAccount, mapped to the amount credited.
TOP_UP_CODES: Mapping[str, int] = MappingProxyType({
    "upg100": 100,
    "upg500": 500,
    "upg1000": 1000,
})

# Composite key delimiter and the code point the codec reserves as "max".
KEY_DELIMITER = "\x00"
MAX_UNICODE_RUNE = "\U0010ffff"

# Contract names as deployed on the network.
USER_CONTRACT = "regnet.user"
REGISTRAR_CONTRACT = "regnet.registrar"


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of submitting an invocation's write set to the world state.

    APPLIED: All writes became visible together.
    ALREADY_APPLIED: The tx_id was committed before; nothing was written.
    REJECTED: The invocation failed, or a key it read changed before commit;
              nothing was written.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class ErrorKind(Enum):
    """Failure taxonomy surfaced to callers."""
    NOT_FOUND = "NotFound"
    ALREADY_EXISTS = "AlreadyExists"
    INVALID_ARGUMENT = "InvalidArgument"
    INVALID_STATE = "InvalidState"
    PERMISSION_DENIED = "PermissionDenied"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    CONFLICT = "Conflict"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class RegistryError(Exception):
    """
    Base exception for all registry errors.

    Attributes:
        kind: The ErrorKind this failure maps to at the invocation boundary
        identifiers: The offending identifiers (e.g. {"name": ..., "ssn": ...})
    """
    kind: ErrorKind = ErrorKind.INVALID_STATE

    def __init__(self, message: str, **identifiers: Any):
        super().__init__(message)
        self.identifiers: Dict[str, Any] = dict(identifiers)


class NotFound(RegistryError):
    """Raised when a referenced entity is absent from the world state."""
    kind = ErrorKind.NOT_FOUND


class AlreadyExists(RegistryError):
    """Raised when creating an entity whose key is already taken."""
    kind = ErrorKind.ALREADY_EXISTS


class InvalidArgument(RegistryError):
    """Raised for malformed or unrecognized input (bad top-up code, bad status, bad key)."""
    kind = ErrorKind.INVALID_ARGUMENT


class InvalidState(RegistryError):
    """Raised when an operation is not legal in the entity's current state."""
    kind = ErrorKind.INVALID_STATE


class PermissionDenied(RegistryError):
    """Raised when the supplied owner does not own the entity."""
    kind = ErrorKind.PERMISSION_DENIED


class InsufficientFunds(RegistryError):
    """Raised when a balance is below the amount an operation must debit."""
    kind = ErrorKind.INSUFFICIENT_FUNDS


class TransactionConflict(RegistryError):
    """Raised when a key read by an invocation changed before it could commit."""
    kind = ErrorKind.CONFLICT


# ============================================================================
# KEY CODEC
# ============================================================================

def _validate_key_part(part: str, what: str) -> None:
    if not isinstance(part, str):
        raise InvalidArgument(f"{what} must be a string, got {type(part).__name__}")
    if KEY_DELIMITER in part or MAX_UNICODE_RUNE in part:
        raise InvalidArgument(f"{what} contains a reserved code point: {part!r}")


def create_composite_key(namespace: str, attributes: Sequence[str]) -> str:
    """
    Encode a namespace and an ordered list of attributes into one storage key.

    Layout: NUL namespace NUL attr_1 NUL ... attr_n NUL

    The encoding is deterministic and injective, swapping attributes changes
    the key, and the key for a prefix of the attributes is a string prefix of
    the full key. Values are not normalized: "Alice" and "alice" are
    different keys.

    Args:
        namespace: Key space partition (e.g. "user")
        attributes: Ordered attribute values (e.g. [name, ssn])

    Returns:
        Encoded composite key

    Raises:
        InvalidArgument: If the namespace is empty or any part contains
                         U+0000 or U+10FFFF
    """
    if not namespace:
        raise InvalidArgument("Composite key namespace cannot be empty")
    _validate_key_part(namespace, "namespace")
    parts = [KEY_DELIMITER, namespace, KEY_DELIMITER]
    for attr in attributes:
        _validate_key_part(attr, "attribute")
        parts.append(attr)
        parts.append(KEY_DELIMITER)
    return "".join(parts)


def split_composite_key(key: str) -> Tuple[str, Tuple[str, ...]]:
    """
    Decode a key produced by create_composite_key.

    Returns:
        (namespace, attributes)

    Raises:
        InvalidArgument: If key is not a string or not a composite key
    """
    if not isinstance(key, str):
        raise InvalidArgument(f"Composite key must be a string, got {type(key).__name__}", key=key)
    if not key or len(key) < 3 or key[0] != KEY_DELIMITER or key[-1] != KEY_DELIMITER:
        raise InvalidArgument(f"Not a composite key: {key!r}")
    components = key[1:-1].split(KEY_DELIMITER)
    namespace = components[0]
    if not namespace:
        raise InvalidArgument(f"Not a composite key: {key!r}")
    return namespace, tuple(components[1:])


@dataclass(frozen=True, slots=True)
class CompositeKey:
    """
    Typed reference to a stored record: a namespace plus ordered attributes.

    Used wherever one record points at another (a Property's owner). It is
    never dereferenced directly; resolve it through the EntityRepository.

    Attributes:
        namespace: Key space partition
        attributes: Ordered attribute values
    """
    namespace: str
    attributes: Tuple[str, ...] = ()

    def __post_init__(self):
        if not isinstance(self.attributes, tuple):
            object.__setattr__(self, 'attributes', tuple(self.attributes))
        # Validates as a side effect
        create_composite_key(self.namespace, self.attributes)

    def encode(self) -> str:
        """Return the encoded storage key."""
        return create_composite_key(self.namespace, self.attributes)

    @classmethod
    def parse(cls, key: str) -> CompositeKey:
        """Build a CompositeKey from its encoded form."""
        namespace, attributes = split_composite_key(key)
        return cls(namespace, attributes)

    def __str__(self) -> str:
        return self.encode()

    def __repr__(self) -> str:
        return f"CompositeKey({self.namespace}:{'/'.join(self.attributes)})"


def user_key(name: str, ssn: str) -> CompositeKey:
    """Key of the User identified by (name, ssn)."""
    return CompositeKey(NAMESPACE_USER, (name, ssn))


def user_request_key(name: str, ssn: str) -> CompositeKey:
    """Key of the pending UserRequest identified by (name, ssn)."""
    return CompositeKey(NAMESPACE_REQUEST, (name, ssn))


def property_key(prop_id: str) -> CompositeKey:
    """Key of the Property identified by prop_id."""
    return CompositeKey(NAMESPACE_PROPERTY, (prop_id,))


def property_request_key(prop_id: str) -> CompositeKey:
    """Key of the pending PropertyRequest identified by prop_id."""
    return CompositeKey(NAMESPACE_PROPERTY_REQUEST, (prop_id,))


# ============================================================================
# INVOCATION TYPES
# ============================================================================

def format_timestamp(timestamp: datetime) -> str:
    """
    Render a transaction timestamp as an ISO-8601 UTC string at whole seconds.

    Naive datetimes are taken to be UTC. Output looks like
    "2024-03-15T09:30:00.000Z".
    """
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)
    return timestamp.strftime("%Y-%m-%dT%H:%M:%S") + ".000Z"


@dataclass(frozen=True, slots=True)
class InvocationContext:
    """
    What the platform supplies alongside an invocation's arguments.

    Attributes:
        caller: Identity of the submitting client (recorded, not enforced)
        timestamp: Logical transaction timestamp; the only clock contracts may read
    """
    caller: str = "anonymous"
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class StateWrite:
    """
    One entry of a write set.

    Attributes:
        key: Storage key
        old_value: Committed bytes before the write (None if the key was absent)
        new_value: Bytes after the write (None for a delete)
    """
    key: str
    old_value: Optional[bytes]
    new_value: Optional[bytes]

    @property
    def is_delete(self) -> bool:
        return self.new_value is None


@dataclass(frozen=True, slots=True)
class RegistryConfig:
    """
    Tunable behaviour of the deployed contracts.

    Attributes:
        top_up_codes: Bank transaction code -> amount credited by rechargeAccount
        credit_seller: Credit the previous owner in purchaseProperty (off by default,
                       matching the network's historical accounting)
        strict_status: Reject statuses outside PROPERTY_STATUSES in updateProperty

    The code table is held as a read-only copy and left out of the hash.
    """
    top_up_codes: Mapping[str, int] = field(default_factory=lambda: TOP_UP_CODES, hash=False)
    credit_seller: bool = False
    strict_status: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'top_up_codes', MappingProxyType(dict(self.top_up_codes)))


def compute_tx_id(
    contract: str,
    function: str,
    args: Sequence[Any],
    context: InvocationContext,
    nonce: int = 0,
) -> str:
    """
    Compute a deterministic transaction id from an invocation's content.

    Same contract, function, arguments, caller, timestamp and nonce always
    produce the same id. The nonce tells apart two genuine submissions of
    identical content; a resubmission reuses the id it was first given.
    """
    timestamp = context.timestamp.isoformat() if context.timestamp else "none"
    content_parts = [
        f"contract:{contract}",
        f"function:{function}",
        f"caller:{context.caller}",
        f"timestamp:{timestamp}",
        f"nonce:{nonce}",
    ]
    for arg in args:
        content_parts.append(f"arg:{type(arg).__name__}:{arg}")
    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class StateStub(Protocol):
    """
    Invocation-scoped access to the world state.

    This is the only surface contract functions use. Writes are buffered
    and become visible to other invocations only when the whole invocation
    commits; later reads in the same invocation see earlier writes.
    """

    @property
    def tx_id(self) -> str:
        """Identifier of the running invocation."""
        ...

    @property
    def tx_timestamp(self) -> datetime:
        """Logical timestamp of the running invocation."""
        ...

    @property
    def caller(self) -> str:
        """Identity of the submitting client."""
        ...

    def get_state(self, key: str) -> Optional[bytes]:
        """Return the value stored under key, or None if absent."""
        ...

    def put_state(self, key: str, value: bytes) -> None:
        """Stage a write of value under key."""
        ...

    def delete_state(self, key: str) -> None:
        """Stage a delete of key."""
        ...

    def get_state_by_partial_composite_key(
        self, namespace: str, attributes: Sequence[str] = ()
    ) -> Iterator[Tuple[str, bytes]]:
        """Yield (key, value) pairs under a composite key prefix, in key order."""
        ...
