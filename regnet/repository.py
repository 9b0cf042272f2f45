"""
repository.py - Typed Record Access

EntityRepository turns raw get/put/delete on a StateStub into typed
exists/load/save/remove for each record kind. It owns the storage format:
canonical JSON (sorted keys, compact separators, UTF-8), so a record always
serializes to the same bytes and load(save(e)) == e.

load_* never returns a default-valued record: a missing key raises NotFound
and an unreadable one raises RegistryError.
"""

from __future__ import annotations
import json
from typing import Any, Callable, List, Type, TypeVar

from .core import (
    CompositeKey, StateStub, NotFound, RegistryError,
    NAMESPACE_REQUEST, NAMESPACE_PROPERTY_REQUEST,
    user_key, user_request_key, property_key, property_request_key,
)
from .entities import UserRequest, User, PropertyRequest, Property


Record = TypeVar("Record", UserRequest, User, PropertyRequest, Property)


def serialize(record: Any) -> bytes:
    """Canonical storage bytes of a record."""
    return json.dumps(
        record.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def deserialize(record_type: Type[Record], raw: bytes) -> Record:
    """
    Rebuild a record from storage bytes.

    Raises:
        RegistryError: If the bytes are not a JSON object of the expected shape
    """
    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise RegistryError(f"Corrupt {record_type.__name__} record: {e}") from e
    if not isinstance(data, dict):
        raise RegistryError(f"Corrupt {record_type.__name__} record: expected an object")
    return record_type.from_dict(data)


class EntityRepository:
    """
    Typed access to the four record kinds through one invocation's stub.

    Example:
        repo = EntityRepository(stub)
        if not repo.user_exists("Alice", "SSN1"):
            ...
        user = repo.load_user("Alice", "SSN1")
        repo.save_user(replace(user, balance=user.balance + 100))
    """

    def __init__(self, stub: StateStub):
        self.stub = stub

    # ========================================================================
    # GENERIC HELPERS
    # ========================================================================

    def exists(self, key: CompositeKey) -> bool:
        """True if any record is stored under key."""
        raw = self.stub.get_state(key.encode())
        return bool(raw)

    def _load(self, record_type: Type[Record], key: CompositeKey, missing: Callable[[], NotFound]) -> Record:
        raw = self.stub.get_state(key.encode())
        if not raw:
            raise missing()
        return deserialize(record_type, raw)

    def _save(self, record: Any) -> None:
        self.stub.put_state(record.key.encode(), serialize(record))

    def _remove(self, key: CompositeKey) -> None:
        self.stub.delete_state(key.encode())

    def _list(self, record_type: Type[Record], namespace: str) -> List[Record]:
        return [
            deserialize(record_type, raw)
            for _, raw in self.stub.get_state_by_partial_composite_key(namespace)
        ]

    # ========================================================================
    # USER REQUESTS
    # ========================================================================

    def user_request_exists(self, name: str, ssn: str) -> bool:
        return self.exists(user_request_key(name, ssn))

    def load_user_request(self, name: str, ssn: str) -> UserRequest:
        """
        Raises:
            NotFound: If no request exists for (name, ssn)
        """
        return self._load(
            UserRequest, user_request_key(name, ssn),
            lambda: NotFound(
                f"User request with name {name} and SSN {ssn} does not exist",
                name=name, ssn=ssn,
            ),
        )

    def save_user_request(self, request: UserRequest) -> None:
        self._save(request)

    def remove_user_request(self, name: str, ssn: str) -> None:
        self._remove(user_request_key(name, ssn))

    def list_user_requests(self) -> List[UserRequest]:
        """All pending user requests in key order."""
        return self._list(UserRequest, NAMESPACE_REQUEST)

    # ========================================================================
    # USERS
    # ========================================================================

    def user_exists(self, name: str, ssn: str) -> bool:
        return self.exists(user_key(name, ssn))

    def load_user(self, name: str, ssn: str) -> User:
        """
        Raises:
            NotFound: If no user exists for (name, ssn)
        """
        return self._load(
            User, user_key(name, ssn),
            lambda: NotFound(
                f"User with name {name} and SSN {ssn} does not exist",
                name=name, ssn=ssn,
            ),
        )

    def resolve_user(self, ref: CompositeKey) -> User:
        """
        Load the User an owner reference points at.

        Raises:
            NotFound: If the referenced user no longer exists
        """
        return self._load(
            User, ref,
            lambda: NotFound(f"User {ref!r} does not exist", owner=ref.encode()),
        )

    def save_user(self, user: User) -> None:
        self._save(user)

    def remove_user(self, name: str, ssn: str) -> None:
        self._remove(user_key(name, ssn))

    # ========================================================================
    # PROPERTY REQUESTS
    # ========================================================================

    def property_request_exists(self, prop_id: str) -> bool:
        return self.exists(property_request_key(prop_id))

    def load_property_request(self, prop_id: str) -> PropertyRequest:
        """
        Raises:
            NotFound: If no request exists for prop_id
        """
        return self._load(
            PropertyRequest, property_request_key(prop_id),
            lambda: NotFound(
                f"Property request with ID {prop_id} does not exist", prop_id=prop_id,
            ),
        )

    def save_property_request(self, request: PropertyRequest) -> None:
        self._save(request)

    def remove_property_request(self, prop_id: str) -> None:
        self._remove(property_request_key(prop_id))

    def list_property_requests(self) -> List[PropertyRequest]:
        """All pending property requests in key order."""
        return self._list(PropertyRequest, NAMESPACE_PROPERTY_REQUEST)

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    def property_exists(self, prop_id: str) -> bool:
        return self.exists(property_key(prop_id))

    def load_property(self, prop_id: str) -> Property:
        """
        Raises:
            NotFound: If no property exists for prop_id
        """
        return self._load(
            Property, property_key(prop_id),
            lambda: NotFound(f"Property with ID {prop_id} does not exist", prop_id=prop_id),
        )

    def save_property(self, prop: Property) -> None:
        self._save(prop)

    def remove_property(self, prop_id: str) -> None:
        self._remove(property_key(prop_id))
