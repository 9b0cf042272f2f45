"""
conftest.py - Shared pytest fixtures for regnet tests

Provides common fixtures used across unit, conformance and functional tests:
- Registries (empty, with approved users, with a listed property)
- FakeStub-backed states for calling contract functions directly
"""

import pytest

from regnet import Registry, RegistryConfig, WorldState, USER_CONTRACT

from tests.fake_stub import FakeStub
from tests.flows import T0, invoke_ok, onboard_user, register_property, onboard_stub_user


# =============================================================================
# REGISTRY FIXTURES
# =============================================================================

@pytest.fixture
def world():
    """Fresh world state at T0."""
    return WorldState("test", initial_time=T0, verbose=False)


@pytest.fixture
def registry(world):
    """Registry deployed on an empty world state."""
    return Registry(world, verbose=False)


@pytest.fixture
def alice_registry(registry):
    """Registry with Alice approved and holding 500 upgradCoins."""
    onboard_user(registry, "Alice", "SSN1", "upg500")
    return registry


@pytest.fixture
def market_registry(alice_registry):
    """Alice owns P1 (price 200) listed for sale; Bob holds 1000 upgradCoins."""
    onboard_user(alice_registry, "Bob", "SSN2", "upg1000")
    register_property(alice_registry, "P1", "200", "Alice", "SSN1")
    invoke_ok(alice_registry, USER_CONTRACT, "updateProperty", "P1", "onSale", "Alice", "SSN1")
    return alice_registry


@pytest.fixture
def crediting_registry(world):
    """Registry that credits sellers on purchase."""
    return Registry(world, RegistryConfig(credit_seller=True), verbose=False)


# =============================================================================
# FAKE STUB FIXTURES
# =============================================================================

@pytest.fixture
def stub():
    """Empty FakeStub at T0."""
    return FakeStub(time=T0)


@pytest.fixture
def alice_stub(stub):
    """FakeStub with Alice approved and holding 500 upgradCoins."""
    onboard_stub_user(stub, "Alice", "SSN1", "upg500")
    return stub
