"""
test_user_contract.py - Unit tests for user contract functions

Tests each operation's success path, its failure kinds in the documented
order, and that a failing call leaves the stub untouched.
"""

import pytest
from datetime import datetime, timezone, timedelta

from regnet import (
    NotFound, AlreadyExists, InvalidArgument, InvalidState, PermissionDenied,
    InsufficientFunds, RegistryConfig, ErrorKind, user_key,
    STATUS_REGISTERED, STATUS_ON_SALE, USER_CONTRACT,
)
from regnet.contracts import registrar, user
from regnet.contracts.user import USER_FUNCTIONS, RechargeReceipt

from tests.flows import onboard_stub_user
from tests.fake_stub import FakeStub


def list_for_sale(stub, prop_id="P1", price=200):
    user.property_registration_request(stub, prop_id, price, "Alice", "SSN1")
    registrar.approve_property_request(stub, prop_id)
    return user.update_property(stub, prop_id, STATUS_ON_SALE, "Alice", "SSN1")


class TestCreateUserRequest:

    def test_created_at_from_invocation_timestamp(self, stub):
        request = user.create_user_request(stub, "Alice", "a@example.com", "555", "SSN1")
        assert request.created_at == "2025-01-01T09:30:00.000Z"

    def test_timezone_converted_to_utc(self):
        tz = timezone(timedelta(hours=5, minutes=30))
        stub = FakeStub(time=datetime(2025, 1, 1, 15, 0, 42, 999999, tzinfo=tz))
        request = user.create_user_request(stub, "Alice", "a@example.com", "555", "SSN1")
        assert request.created_at == "2025-01-01T09:30:42.000Z"

    def test_duplicate_request(self, stub):
        user.create_user_request(stub, "Alice", "a@example.com", "555", "SSN1")
        with pytest.raises(AlreadyExists) as exc:
            user.create_user_request(stub, "Alice", "other@example.com", "666", "SSN1")
        assert exc.value.kind == ErrorKind.ALREADY_EXISTS

    def test_same_name_different_ssn(self, stub):
        user.create_user_request(stub, "Alice", "a@example.com", "555", "SSN1")
        user.create_user_request(stub, "Alice", "a@example.com", "555", "SSN9")
        assert len(registrar.list_user_requests(stub)) == 2


class TestRechargeAccount:

    @pytest.mark.parametrize("code,amount", [("upg100", 100), ("upg500", 500), ("upg1000", 1000)])
    def test_codes(self, stub, code, amount):
        onboard_stub_user(stub, "Alice", "SSN1")
        receipt = user.recharge_account(stub, "Alice", "SSN1", code)
        assert receipt.amount == amount
        assert receipt.user.balance == amount
        assert registrar.view_user(stub, "Alice", "SSN1").balance == amount

    def test_message(self, alice_stub):
        receipt = user.recharge_account(alice_stub, "Alice", "SSN1", "upg100")
        assert isinstance(receipt, RechargeReceipt)
        assert str(receipt) == "Account recharged with 100 upgradCoins. Total upgradCoins: 600"

    def test_invalid_code(self, alice_stub):
        before = alice_stub.snapshot()
        with pytest.raises(InvalidArgument, match="Invalid Bank Transaction ID"):
            user.recharge_account(alice_stub, "Alice", "SSN1", "upg999")
        assert alice_stub.snapshot() == before

    def test_unknown_user_checked_first(self, stub):
        with pytest.raises(NotFound):
            user.recharge_account(stub, "Alice", "SSN1", "upg999")

    def test_custom_code_table(self, alice_stub):
        config = RegistryConfig(top_up_codes={"promo": 7})
        assert user.recharge_account(alice_stub, "Alice", "SSN1", "promo", config=config).user.balance == 507
        with pytest.raises(InvalidArgument):
            user.recharge_account(alice_stub, "Alice", "SSN1", "upg100", config=config)

    @pytest.mark.parametrize("code", [["upg500"], {"upg500": 1}, 500, None])
    def test_non_string_code(self, alice_stub, code):
        before = alice_stub.snapshot()
        with pytest.raises(InvalidArgument, match="must be a string"):
            user.recharge_account(alice_stub, "Alice", "SSN1", code)
        assert alice_stub.snapshot() == before

    def test_non_string_code_through_registry(self, alice_registry):
        result = alice_registry.invoke(USER_CONTRACT, "rechargeAccount", "Alice", "SSN1", ["upg500"])
        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert result.identifiers["top_up_code"] == ["upg500"]
        assert alice_registry.evaluate(USER_CONTRACT, "viewUser", "Alice", "SSN1").unwrap().balance == 500


class TestRegistryConfig:

    def test_code_table_is_read_only(self):
        config = RegistryConfig()
        with pytest.raises(TypeError):
            config.top_up_codes["free"] = 10**6
        assert "free" not in RegistryConfig().top_up_codes

    def test_caller_table_copied(self):
        codes = {"promo": 7}
        config = RegistryConfig(top_up_codes=codes)
        codes["promo"] = 700
        assert config.top_up_codes["promo"] == 7

    def test_hashable(self):
        assert hash(RegistryConfig()) == hash(RegistryConfig())
        assert RegistryConfig(top_up_codes={"promo": 7}) != RegistryConfig()
        assert len({RegistryConfig(), RegistryConfig(credit_seller=True)}) == 2


class TestPropertyRegistrationRequest:

    def test_string_price_coerced(self, alice_stub):
        request = user.property_registration_request(alice_stub, "P1", "200", "Alice", "SSN1")
        assert request.price == 200
        assert request.status == STATUS_REGISTERED
        assert request.owner == user_key("Alice", "SSN1")

    @pytest.mark.parametrize("price", ["0", "-5", "abc", "1.5", 0, -1, 2.5, True, None, "²"])
    def test_bad_price(self, alice_stub, price):
        with pytest.raises(InvalidArgument):
            user.property_registration_request(alice_stub, "P1", price, "Alice", "SSN1")

    def test_unknown_owner(self, stub):
        with pytest.raises(NotFound, match="Owner with name Alice and SSN SSN1 does not exist"):
            user.property_registration_request(stub, "P1", 200, "Alice", "SSN1")

    def test_pending_request_only_is_not_an_owner(self, stub):
        user.create_user_request(stub, "Alice", "a@example.com", "555", "SSN1")
        with pytest.raises(NotFound):
            user.property_registration_request(stub, "P1", 200, "Alice", "SSN1")

    def test_duplicate_pending(self, alice_stub):
        user.property_registration_request(alice_stub, "P1", 200, "Alice", "SSN1")
        with pytest.raises(AlreadyExists):
            user.property_registration_request(alice_stub, "P1", 300, "Alice", "SSN1")

    def test_duplicate_registered(self, alice_stub):
        user.property_registration_request(alice_stub, "P1", 200, "Alice", "SSN1")
        registrar.approve_property_request(alice_stub, "P1")
        with pytest.raises(AlreadyExists, match="Property with ID P1 already exists"):
            user.property_registration_request(alice_stub, "P1", 300, "Alice", "SSN1")


class TestUpdateProperty:

    def test_list_and_delist(self, alice_stub):
        assert list_for_sale(alice_stub).status == STATUS_ON_SALE
        updated = user.update_property(alice_stub, "P1", STATUS_REGISTERED, "Alice", "SSN1")
        assert updated.status == STATUS_REGISTERED
        assert user.view_property(alice_stub, "P1") == updated

    def test_unknown_property(self, alice_stub):
        with pytest.raises(NotFound):
            user.update_property(alice_stub, "P9", STATUS_ON_SALE, "Alice", "SSN1")

    def test_not_owner(self, alice_stub):
        list_for_sale(alice_stub)
        with pytest.raises(PermissionDenied) as exc:
            user.update_property(alice_stub, "P1", STATUS_REGISTERED, "Bob", "SSN2")
        assert exc.value.identifiers["prop_id"] == "P1"
        assert user.view_property(alice_stub, "P1").status == STATUS_ON_SALE

    def test_owner_check_is_exact(self, alice_stub):
        list_for_sale(alice_stub)
        with pytest.raises(PermissionDenied):
            user.update_property(alice_stub, "P1", STATUS_REGISTERED, "alice", "SSN1")

    def test_permission_checked_before_status(self, alice_stub):
        list_for_sale(alice_stub)
        with pytest.raises(PermissionDenied):
            user.update_property(alice_stub, "P1", "bogus", "Bob", "SSN2")

    def test_unknown_status(self, alice_stub):
        list_for_sale(alice_stub)
        with pytest.raises(InvalidArgument):
            user.update_property(alice_stub, "P1", "demolished", "Alice", "SSN1")

    def test_open_status_when_not_strict(self, alice_stub):
        list_for_sale(alice_stub)
        config = RegistryConfig(strict_status=False)
        assert user.update_property(alice_stub, "P1", "demolished", "Alice", "SSN1", config=config).status == "demolished"

    @pytest.mark.parametrize("strict", [True, False])
    @pytest.mark.parametrize("status", [["onSale"], {"onSale"}, 1, None])
    def test_non_string_status(self, alice_stub, strict, status):
        list_for_sale(alice_stub)
        before = alice_stub.snapshot()
        with pytest.raises(InvalidArgument, match="must be a string"):
            user.update_property(alice_stub, "P1", status, "Alice", "SSN1",
                                 config=RegistryConfig(strict_status=strict))
        assert alice_stub.snapshot() == before

    def test_non_string_status_through_registry(self, market_registry):
        result = market_registry.invoke(USER_CONTRACT, "updateProperty", "P1", ["onSale"], "Alice", "SSN1")
        assert result.error == ErrorKind.INVALID_ARGUMENT
        assert result.identifiers["prop_id"] == "P1"
        assert market_registry.evaluate(USER_CONTRACT, "viewProperty", "P1").unwrap().status == STATUS_ON_SALE


class TestPurchaseProperty:

    def test_transfers_title_and_debits_buyer(self, alice_stub):
        onboard_stub_user(alice_stub, "Bob", "SSN2", "upg1000")
        list_for_sale(alice_stub)

        prop = user.purchase_property(alice_stub, "P1", "Bob", "SSN2")

        assert prop.owner == user_key("Bob", "SSN2")
        assert prop.status == STATUS_REGISTERED
        assert user.view_user(alice_stub, "Bob", "SSN2").balance == 800
        # Seller is not credited by default
        assert user.view_user(alice_stub, "Alice", "SSN1").balance == 500

    def test_seller_credited_when_configured(self, alice_stub):
        onboard_stub_user(alice_stub, "Bob", "SSN2", "upg1000")
        list_for_sale(alice_stub)
        user.purchase_property(alice_stub, "P1", "Bob", "SSN2", config=RegistryConfig(credit_seller=True))
        assert user.view_user(alice_stub, "Alice", "SSN1").balance == 700
        assert user.view_user(alice_stub, "Bob", "SSN2").balance == 800

    def test_owner_buying_own_listing(self, alice_stub):
        list_for_sale(alice_stub)
        user.purchase_property(alice_stub, "P1", "Alice", "SSN1")
        assert user.view_user(alice_stub, "Alice", "SSN1").balance == 300

    def test_owner_buying_own_listing_with_seller_credit(self, alice_stub):
        list_for_sale(alice_stub)
        user.purchase_property(alice_stub, "P1", "Alice", "SSN1", config=RegistryConfig(credit_seller=True))
        assert user.view_user(alice_stub, "Alice", "SSN1").balance == 500

    def test_unknown_property(self, alice_stub):
        with pytest.raises(NotFound):
            user.purchase_property(alice_stub, "P9", "Alice", "SSN1")

    def test_not_on_sale(self, alice_stub):
        onboard_stub_user(alice_stub, "Bob", "SSN2", "upg1000")
        user.property_registration_request(alice_stub, "P1", 200, "Alice", "SSN1")
        registrar.approve_property_request(alice_stub, "P1")
        before = alice_stub.snapshot()
        with pytest.raises(InvalidState, match="not listed for sale"):
            user.purchase_property(alice_stub, "P1", "Bob", "SSN2")
        assert alice_stub.snapshot() == before

    def test_sale_status_checked_before_buyer(self, alice_stub):
        user.property_registration_request(alice_stub, "P1", 200, "Alice", "SSN1")
        registrar.approve_property_request(alice_stub, "P1")
        with pytest.raises(InvalidState):
            user.purchase_property(alice_stub, "P1", "Nobody", "SSN0")

    def test_unknown_buyer(self, alice_stub):
        list_for_sale(alice_stub)
        with pytest.raises(NotFound):
            user.purchase_property(alice_stub, "P1", "Nobody", "SSN0")

    def test_insufficient_funds(self, alice_stub):
        onboard_stub_user(alice_stub, "Bob", "SSN2", "upg100")
        list_for_sale(alice_stub)
        before = alice_stub.snapshot()
        with pytest.raises(InsufficientFunds) as exc:
            user.purchase_property(alice_stub, "P1", "Bob", "SSN2")
        assert exc.value.identifiers["balance"] == 100
        assert exc.value.identifiers["price"] == 200
        assert alice_stub.snapshot() == before

    def test_exact_balance(self, alice_stub):
        onboard_stub_user(alice_stub, "Bob", "SSN2", "upg100")
        list_for_sale(alice_stub, price=100)
        user.purchase_property(alice_stub, "P1", "Bob", "SSN2")
        assert user.view_user(alice_stub, "Bob", "SSN2").balance == 0


def test_function_table():
    assert set(USER_FUNCTIONS) == {
        "instantiate", "createUserRequest", "rechargeAccount", "viewUser",
        "propertyRegistrationRequest", "viewProperty", "updateProperty", "purchaseProperty",
    }
    assert user.instantiate(FakeStub()) == "User smart contract was successfully deployed!"
