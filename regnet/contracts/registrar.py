"""
registrar.py - Registrar Contract (regnet.registrar)

Approval operations run by the land registrar. Each one promotes a pending
request into an active record and retires the request, inside a single
invocation:

    UserRequest(name, ssn)   --approve_new_user-->          User(name, ssn, balance=0)
    PropertyRequest(propId)  --approve_property_request-->  Property(propId)

approve_new_user is the only way a User comes into existence, so every
balance starts at exactly zero.

All functions take the invocation's StateStub as their first argument and
either return the resulting record or raise a RegistryError subclass.
"""

from __future__ import annotations
from typing import Callable, Dict, List

from ..core import StateStub, AlreadyExists
from ..entities import User, UserRequest, Property, PropertyRequest
from ..repository import EntityRepository


def instantiate(stub: StateStub) -> str:
    """Deployment hook. Writes nothing."""
    return "Registrar smart contract was successfully deployed!"


def approve_new_user(stub: StateStub, name: str, ssn: str) -> User:
    """
    Approve a pending user request.

    Args:
        stub: Invocation-scoped state access
        name: Requesting user's name
        ssn: Requesting user's SSN

    Returns:
        The new User, with balance 0 and contact fields and createdAt copied
        from the request

    Raises:
        NotFound: If no request exists for (name, ssn)
        AlreadyExists: If a User with (name, ssn) already exists
    """
    repo = EntityRepository(stub)
    request = repo.load_user_request(name, ssn)

    if repo.user_exists(name, ssn):
        raise AlreadyExists(
            f"User with name {name} and SSN {ssn} already exists", name=name, ssn=ssn,
        )

    user = User.from_request(request)
    repo.save_user(user)
    repo.remove_user_request(name, ssn)
    return user


def view_user(stub: StateStub, name: str, ssn: str) -> User:
    """
    Raises:
        NotFound: If no user exists for (name, ssn)
    """
    return EntityRepository(stub).load_user(name, ssn)


def approve_property_request(stub: StateStub, prop_id: str) -> Property:
    """
    Approve a pending property registration.

    The new Property carries the request's owner, price and status unchanged.

    Raises:
        NotFound: If no request exists for prop_id
        AlreadyExists: If a Property with prop_id is already registered
    """
    repo = EntityRepository(stub)
    request = repo.load_property_request(prop_id)

    if repo.property_exists(prop_id):
        raise AlreadyExists(f"Property with ID {prop_id} already exists", prop_id=prop_id)

    prop = Property.from_request(request)
    repo.save_property(prop)
    repo.remove_property_request(prop_id)
    return prop


def view_property(stub: StateStub, prop_id: str) -> Property:
    """
    Raises:
        NotFound: If no property exists for prop_id
    """
    return EntityRepository(stub).load_property(prop_id)


def list_user_requests(stub: StateStub) -> List[UserRequest]:
    """Pending user requests awaiting approval, in key order."""
    return EntityRepository(stub).list_user_requests()


def list_property_requests(stub: StateStub) -> List[PropertyRequest]:
    """Pending property requests awaiting approval, in key order."""
    return EntityRepository(stub).list_property_requests()


# Network function name -> implementation
REGISTRAR_FUNCTIONS: Dict[str, Callable] = {
    "instantiate": instantiate,
    "approveNewUser": approve_new_user,
    "viewUser": view_user,
    "approvePropertyRequest": approve_property_request,
    "viewProperty": view_property,
    "listUserRequests": list_user_requests,
    "listPropertyRequests": list_property_requests,
}
