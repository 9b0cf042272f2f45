"""
entities.py - Registry Records

The four record kinds held in the world state:
    UserRequest      pending account request   (request, name, ssn)
    User             active account            (user, name, ssn)
    PropertyRequest  pending title request     (propertyRequest, propId)
    Property         registered title          (property, propId)

Records are immutable. A workflow step produces a new record with
dataclasses.replace() and saves it; it never mutates one in place.

Each record knows its own storage key and its wire form (to_dict/from_dict).
The wire form keeps the field names used on the network since launch
(createdAt, propId, upgradCoins). Only the field names carry over; keys and
owner references use the composite key layout in core.py.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict

from .core import (
    CompositeKey, InvalidArgument, RegistryError,
    NAMESPACE_USER,
    user_key, user_request_key, property_key, property_request_key,
)


def _require_text(value: Any, field_name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f"{field_name} cannot be empty", **{field_name: value})


def _require_price(price: Any) -> None:
    if isinstance(price, bool) or not isinstance(price, int):
        raise InvalidArgument(f"price must be an integer, got {type(price).__name__}", price=price)
    if price <= 0:
        raise InvalidArgument(f"price must be positive, got {price}", price=price)


def _require_owner(owner: Any) -> None:
    if not isinstance(owner, CompositeKey) or owner.namespace != NAMESPACE_USER:
        raise InvalidArgument(f"owner must reference a user key, got {owner!r}", owner=owner)


def _field(data: Dict[str, Any], name: str, kind: str) -> Any:
    try:
        return data[name]
    except KeyError:
        raise RegistryError(f"Corrupt {kind} record: missing field {name!r}") from None


# ============================================================================
# USER ACCOUNTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class UserRequest:
    """
    A pending request for a user account.

    Lives only until the registrar approves it, at which point it is
    replaced by a User with the same (name, ssn).
    """
    name: str
    email: str
    phone: str
    ssn: str
    created_at: str

    def __post_init__(self):
        _require_text(self.name, "name")
        _require_text(self.ssn, "ssn")

    @property
    def key(self) -> CompositeKey:
        return user_request_key(self.name, self.ssn)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "ssn": self.ssn,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> UserRequest:
        return cls(
            name=_field(data, "name", "user request"),
            email=_field(data, "email", "user request"),
            phone=_field(data, "phone", "user request"),
            ssn=_field(data, "ssn", "user request"),
            created_at=_field(data, "createdAt", "user request"),
        )


@dataclass(frozen=True, slots=True)
class User:
    """
    An approved user account.

    Attributes:
        balance: upgradCoins held by the user; never negative
    """
    name: str
    email: str
    phone: str
    ssn: str
    created_at: str
    balance: int = 0

    def __post_init__(self):
        _require_text(self.name, "name")
        _require_text(self.ssn, "ssn")
        if isinstance(self.balance, bool) or not isinstance(self.balance, int):
            raise InvalidArgument(
                f"balance must be an integer, got {type(self.balance).__name__}",
                name=self.name, ssn=self.ssn,
            )
        if self.balance < 0:
            raise InvalidArgument(
                f"balance cannot be negative, got {self.balance}",
                name=self.name, ssn=self.ssn,
            )

    @property
    def key(self) -> CompositeKey:
        return user_key(self.name, self.ssn)

    @classmethod
    def from_request(cls, request: UserRequest) -> User:
        """Promote an approved request. Balance always starts at zero."""
        return cls(
            name=request.name,
            email=request.email,
            phone=request.phone,
            ssn=request.ssn,
            created_at=request.created_at,
            balance=0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "ssn": self.ssn,
            "createdAt": self.created_at,
            "upgradCoins": self.balance,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> User:
        return cls(
            name=_field(data, "name", "user"),
            email=_field(data, "email", "user"),
            phone=_field(data, "phone", "user"),
            ssn=_field(data, "ssn", "user"),
            created_at=_field(data, "createdAt", "user"),
            balance=_field(data, "upgradCoins", "user"),
        )


# ============================================================================
# PROPERTY TITLES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PropertyRequest:
    """A pending request to register a property title."""
    prop_id: str
    owner: CompositeKey
    price: int
    status: str

    def __post_init__(self):
        _require_text(self.prop_id, "prop_id")
        _require_owner(self.owner)
        _require_price(self.price)
        _require_text(self.status, "status")

    @property
    def key(self) -> CompositeKey:
        return property_request_key(self.prop_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "propId": self.prop_id,
            "owner": self.owner.encode(),
            "price": self.price,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PropertyRequest:
        return cls(
            prop_id=_field(data, "propId", "property request"),
            owner=CompositeKey.parse(_field(data, "owner", "property request")),
            price=_field(data, "price", "property request"),
            status=_field(data, "status", "property request"),
        )


@dataclass(frozen=True, slots=True)
class Property:
    """
    A registered property title.

    Attributes:
        owner: Key of the owning User
        status: "registered" or "onSale"
    """
    prop_id: str
    owner: CompositeKey
    price: int
    status: str

    def __post_init__(self):
        _require_text(self.prop_id, "prop_id")
        _require_owner(self.owner)
        _require_price(self.price)
        _require_text(self.status, "status")

    @property
    def key(self) -> CompositeKey:
        return property_key(self.prop_id)

    @classmethod
    def from_request(cls, request: PropertyRequest) -> Property:
        return cls(
            prop_id=request.prop_id,
            owner=request.owner,
            price=request.price,
            status=request.status,
        )

    def is_owned_by(self, owner: CompositeKey) -> bool:
        """Byte-wise comparison of the encoded owner keys."""
        return self.owner.encode() == owner.encode()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "propId": self.prop_id,
            "owner": self.owner.encode(),
            "price": self.price,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Property:
        return cls(
            prop_id=_field(data, "propId", "property"),
            owner=CompositeKey.parse(_field(data, "owner", "property")),
            price=_field(data, "price", "property"),
            status=_field(data, "status", "property"),
        )
