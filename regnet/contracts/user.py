"""
user.py - User Contract (regnet.user)

Self-service operations available to account holders:
1. create_user_request() - ask for an account (approved by the registrar)
2. recharge_account() - top up upgradCoins with a bank transaction code
3. property_registration_request() - ask for a title to be registered
4. update_property() - list a title for sale or take it off the market
5. purchase_property() - buy a listed title

purchase_property is the one operation that writes two records (buyer and
property). Both writes go to the same stub, so they commit together or not
at all; a debited buyer without a transferred title cannot be observed.

All functions take the invocation's StateStub as their first argument and
either return their result or raise a RegistryError subclass. Functions
whose behaviour is tunable accept a RegistryConfig as `config`.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional

from ..core import (
    StateStub, RegistryConfig,
    AlreadyExists, NotFound, InvalidArgument, InvalidState, PermissionDenied, InsufficientFunds,
    STATUS_REGISTERED, STATUS_ON_SALE, PROPERTY_STATUSES,
    format_timestamp, user_key,
)
from ..entities import User, UserRequest, Property, PropertyRequest
from ..repository import EntityRepository
from .registrar import view_user, view_property

_DEFAULT_CONFIG = RegistryConfig()


def instantiate(stub: StateStub) -> str:
    """Deployment hook. Writes nothing."""
    return "User smart contract was successfully deployed!"


# ============================================================================
# ACCOUNTS
# ============================================================================

def create_user_request(stub: StateStub, name: str, email: str, phone: str, ssn: str) -> UserRequest:
    """
    Record a request for a new user account.

    createdAt is taken from the invocation timestamp, never from a local
    clock, so every re-execution of the invocation stores the same bytes.

    Raises:
        AlreadyExists: If a request for (name, ssn) is already pending
    """
    repo = EntityRepository(stub)
    if repo.user_request_exists(name, ssn):
        raise AlreadyExists(
            f"User request with name {name} and SSN {ssn} already exists", name=name, ssn=ssn,
        )

    request = UserRequest(
        name=name,
        email=email,
        phone=phone,
        ssn=ssn,
        created_at=format_timestamp(stub.tx_timestamp),
    )
    repo.save_user_request(request)
    return request


@dataclass(frozen=True, slots=True)
class RechargeReceipt:
    """Outcome of a successful recharge."""
    amount: int
    user: User

    @property
    def message(self) -> str:
        return (f"Account recharged with {self.amount} upgradCoins. "
                f"Total upgradCoins: {self.user.balance}")

    def __str__(self) -> str:
        return self.message


def recharge_account(
    stub: StateStub,
    name: str,
    ssn: str,
    top_up_code: str,
    config: Optional[RegistryConfig] = None,
) -> RechargeReceipt:
    """
    Credit a user's balance with the amount a bank transaction code stands for.

    Args:
        stub: Invocation-scoped state access
        name: Account holder's name
        ssn: Account holder's SSN
        top_up_code: Bank transaction code (e.g. "upg500")
        config: Supplies the code table (default: TOP_UP_CODES)

    Returns:
        RechargeReceipt with the amount credited and the updated User

    Raises:
        NotFound: If no user exists for (name, ssn)
        InvalidArgument: If top_up_code is not a string or not in the table
    """
    config = config or _DEFAULT_CONFIG
    repo = EntityRepository(stub)
    user = repo.load_user(name, ssn)

    if not isinstance(top_up_code, str):
        raise InvalidArgument(
            f"Bank transaction ID must be a string, got {type(top_up_code).__name__}",
            top_up_code=top_up_code, name=name, ssn=ssn,
        )
    amount = config.top_up_codes.get(top_up_code)
    if amount is None:
        raise InvalidArgument(
            "Invalid Bank Transaction ID", top_up_code=top_up_code, name=name, ssn=ssn,
        )

    updated = replace(user, balance=user.balance + amount)
    repo.save_user(updated)
    return RechargeReceipt(amount=amount, user=updated)


# ============================================================================
# PROPERTIES
# ============================================================================

def _parse_price(price: Any) -> int:
    """Accept an int or a decimal integer string; the network passes arguments as strings."""
    if isinstance(price, bool):
        raise InvalidArgument(f"Invalid price: {price!r}", price=price)
    if isinstance(price, str):
        text = price.strip()
        if not (text.isascii() and text.isdigit()):
            raise InvalidArgument(f"Invalid price: {price!r}", price=price)
        price = int(text)
    if not isinstance(price, int):
        raise InvalidArgument(f"Invalid price: {price!r}", price=price)
    if price <= 0:
        raise InvalidArgument(f"Price must be positive, got {price}", price=price)
    return price


def property_registration_request(
    stub: StateStub,
    prop_id: str,
    price: Any,
    owner_name: str,
    owner_ssn: str,
) -> PropertyRequest:
    """
    Ask the registrar to register a property owned by an existing user.

    Raises:
        NotFound: If the owner is not a registered user
        InvalidArgument: If price is not a positive integer
        AlreadyExists: If prop_id is already pending or registered
    """
    repo = EntityRepository(stub)
    if not repo.user_exists(owner_name, owner_ssn):
        raise NotFound(
            f"Owner with name {owner_name} and SSN {owner_ssn} does not exist",
            name=owner_name, ssn=owner_ssn,
        )
    parsed_price = _parse_price(price)
    if repo.property_request_exists(prop_id):
        raise AlreadyExists(f"Property request with ID {prop_id} already exists", prop_id=prop_id)
    if repo.property_exists(prop_id):
        raise AlreadyExists(f"Property with ID {prop_id} already exists", prop_id=prop_id)

    request = PropertyRequest(
        prop_id=prop_id,
        owner=user_key(owner_name, owner_ssn),
        price=parsed_price,
        status=STATUS_REGISTERED,
    )
    repo.save_property_request(request)
    return request


def update_property(
    stub: StateStub,
    prop_id: str,
    status: str,
    owner_name: str,
    owner_ssn: str,
    config: Optional[RegistryConfig] = None,
) -> Property:
    """
    Change a property's status on behalf of its owner.

    Args:
        stub: Invocation-scoped state access
        prop_id: Property identifier
        status: New status ("registered" or "onSale")
        owner_name: Claimed owner's name
        owner_ssn: Claimed owner's SSN
        config: strict_status=False accepts any non-empty status

    Returns:
        The updated Property

    Raises:
        NotFound: If the property does not exist
        PermissionDenied: If (owner_name, owner_ssn) is not the recorded owner
        InvalidArgument: If status is not a string or not a recognised property status
    """
    config = config or _DEFAULT_CONFIG
    repo = EntityRepository(stub)
    prop = repo.load_property(prop_id)

    if not prop.is_owned_by(user_key(owner_name, owner_ssn)):
        raise PermissionDenied(
            f"User with name {owner_name} and SSN {owner_ssn} is not the owner of the property",
            prop_id=prop_id, name=owner_name, ssn=owner_ssn,
        )
    if not isinstance(status, str):
        raise InvalidArgument(
            f"Property status must be a string, got {type(status).__name__}",
            prop_id=prop_id, status=status,
        )
    if config.strict_status and status not in PROPERTY_STATUSES:
        raise InvalidArgument(
            f"Invalid property status {status!r}; expected one of {sorted(PROPERTY_STATUSES)}",
            prop_id=prop_id, status=status,
        )

    updated = replace(prop, status=status)
    repo.save_property(updated)
    return updated


def purchase_property(
    stub: StateStub,
    prop_id: str,
    buyer_name: str,
    buyer_ssn: str,
    config: Optional[RegistryConfig] = None,
) -> Property:
    """
    Transfer a listed property to a buyer in exchange for upgradCoins.

    Steps:
    1. Load the property
    2. Require status "onSale"
    3. Load the buyer
    4. Require buyer balance >= price
    5. Debit the buyer, set owner to the buyer, set status back to "registered"
    6. Save buyer and property in the same invocation

    The previous owner is not credited unless config.credit_seller is set.

    Returns:
        The updated Property

    Raises:
        NotFound: If the property, the buyer, or (with credit_seller) the seller is missing
        InvalidState: If the property is not listed for sale
        InsufficientFunds: If the buyer cannot cover the price
    """
    config = config or _DEFAULT_CONFIG
    repo = EntityRepository(stub)

    prop = repo.load_property(prop_id)
    if prop.status != STATUS_ON_SALE:
        raise InvalidState(
            f"Property with ID {prop_id} is not listed for sale",
            prop_id=prop_id, status=prop.status,
        )

    buyer = repo.load_user(buyer_name, buyer_ssn)
    if buyer.balance < prop.price:
        raise InsufficientFunds(
            f"Buyer with name {buyer_name} and SSN {buyer_ssn} does not have sufficient account balance",
            prop_id=prop_id, name=buyer_name, ssn=buyer_ssn,
            balance=buyer.balance, price=prop.price,
        )

    # With seller credit, a buyer who already owns the title nets to zero
    seller: Optional[User] = None
    if config.credit_seller and not prop.is_owned_by(buyer.key):
        seller = repo.resolve_user(prop.owner)

    if not (config.credit_seller and prop.is_owned_by(buyer.key)):
        repo.save_user(replace(buyer, balance=buyer.balance - prop.price))
    if seller is not None:
        repo.save_user(replace(seller, balance=seller.balance + prop.price))

    purchased = replace(prop, owner=buyer.key, status=STATUS_REGISTERED)
    repo.save_property(purchased)
    return purchased


# Network function name -> implementation
USER_FUNCTIONS: Dict[str, Callable] = {
    "instantiate": instantiate,
    "createUserRequest": create_user_request,
    "rechargeAccount": recharge_account,
    "viewUser": view_user,
    "propertyRegistrationRequest": property_registration_request,
    "viewProperty": view_property,
    "updateProperty": update_property,
    "purchaseProperty": purchase_property,
}
