"""
regnet - Property Registration Network

A transactional registry of user accounts and property titles on a
versioned key-value world state.

Usage:
    from regnet import Registry, InvocationContext, USER_CONTRACT, REGISTRAR_CONTRACT

    registry = Registry(verbose=False)

    # Account: request -> approval -> top-up
    registry.invoke(USER_CONTRACT, "createUserRequest",
                    "Alice", "alice@example.com", "555-0100", "SSN1")
    registry.invoke(REGISTRAR_CONTRACT, "approveNewUser", "Alice", "SSN1")
    registry.invoke(USER_CONTRACT, "rechargeAccount", "Alice", "SSN1", "upg500")

    # Title: request -> approval -> listing
    registry.invoke(USER_CONTRACT, "propertyRegistrationRequest", "P1", "200", "Alice", "SSN1")
    registry.invoke(REGISTRAR_CONTRACT, "approvePropertyRequest", "P1")
    registry.invoke(USER_CONTRACT, "updateProperty", "P1", "onSale", "Alice", "SSN1")

    prop = registry.evaluate(USER_CONTRACT, "viewProperty", "P1").unwrap()
"""

# Core types
from .core import (
    CompositeKey,
    InvocationContext,
    StateStub,
    StateWrite,
    RegistryConfig,
    ExecuteResult,
    ErrorKind,
    RegistryError,
    NotFound,
    AlreadyExists,
    InvalidArgument,
    InvalidState,
    PermissionDenied,
    InsufficientFunds,
    TransactionConflict,
    create_composite_key,
    split_composite_key,
    user_key,
    user_request_key,
    property_key,
    property_request_key,
    format_timestamp,
    compute_tx_id,
    NAMESPACE_REQUEST,
    NAMESPACE_USER,
    NAMESPACE_PROPERTY,
    NAMESPACE_PROPERTY_REQUEST,
    STATUS_REGISTERED,
    STATUS_ON_SALE,
    PROPERTY_STATUSES,
    TOP_UP_CODES,
    USER_CONTRACT,
    REGISTRAR_CONTRACT,
)

# Records
from .entities import UserRequest, User, PropertyRequest, Property

# Storage
from .world_state import WorldState, TransactionStub, CommittedTransaction
from .repository import EntityRepository, serialize, deserialize

# Contracts
from .contracts import RechargeReceipt
from .contracts import user, registrar

# Invocation surface
from .registry import Registry, InvocationResult, PreparedInvocation
