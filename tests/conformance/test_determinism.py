"""
Determinism Conformance Tests

INVARIANT: Given identical invocations, the registry produces identical state.

    ∀ invocation sequences S:
        registry1.run(S) = registry2.run(S)

This guarantees:
- Independent replicas executing the same invocation agree bit-for-bit
- Replay of the transaction log reproduces state
- Testing is reproducible

Time enters only through the invocation timestamp.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from regnet import Registry, WorldState, InvocationContext, USER_CONTRACT, REGISTRAR_CONTRACT

from tests.flows import T0, onboard_user, register_property


NAMES = ["Alice", "Bob", "Carol"]

operation = st.one_of(
    st.tuples(st.just("recharge"), st.sampled_from(NAMES), st.sampled_from(["upg100", "upg500", "nope"])),
    st.tuples(st.just("list"), st.sampled_from(["P1", "P2"]), st.sampled_from(NAMES)),
    st.tuples(st.just("buy"), st.sampled_from(["P1", "P2"]), st.sampled_from(NAMES)),
    st.tuples(st.just("request"), st.sampled_from(["Dave", "Erin"]), st.just("")),
)


def build() -> Registry:
    registry = Registry(WorldState("test", initial_time=T0, verbose=False), verbose=False)
    for i, name in enumerate(NAMES):
        onboard_user(registry, name, f"SSN{i}", "upg500")
    register_property(registry, "P1", "300", "Alice", "SSN0")
    register_property(registry, "P2", "400", "Bob", "SSN1")
    return registry


def run(registry: Registry, ops) -> None:
    ssn = {name: f"SSN{i}" for i, name in enumerate(NAMES)}
    for op, a, b in ops:
        if op == "recharge":
            registry.invoke(USER_CONTRACT, "rechargeAccount", a, ssn[a], b)
        elif op == "list":
            registry.invoke(USER_CONTRACT, "updateProperty", a, "onSale", b, ssn[b])
        elif op == "buy":
            registry.invoke(USER_CONTRACT, "purchaseProperty", a, b, ssn[b])
        else:
            registry.invoke(USER_CONTRACT, "createUserRequest", a, "e", "p", f"SSN-{a}")


class TestDeterminismProperties:
    """Property-based determinism tests."""

    @given(st.lists(operation, max_size=15))
    @settings(max_examples=30, deadline=None)
    def test_identical_sequences_produce_identical_state(self, ops):
        """PROPERTY: Two registries processing the same invocations reach the same state."""
        first, second = build(), build()
        run(first, ops)
        run(second, ops)

        assert first.world_state.state_hash() == second.world_state.state_hash()
        assert [tx.tx_id for tx in first.world_state.transaction_log] == \
            [tx.tx_id for tx in second.world_state.transaction_log]

    @given(st.lists(operation, max_size=15))
    @settings(max_examples=30, deadline=None)
    def test_replay_reproduces_state(self, ops):
        """PROPERTY: Replaying the transaction log rebuilds identical state."""
        registry = build()
        run(registry, ops)
        replayed = registry.world_state.replay()
        assert replayed.state_hash() == registry.world_state.state_hash()


class TestDeterminismExamples:

    def test_created_at_independent_of_wall_clock(self, registry):
        ctx = InvocationContext("client", T0)
        a = registry.evaluate(USER_CONTRACT, "createUserRequest", "Alice", "a", "p", "SSN1", context=ctx)
        b = registry.evaluate(USER_CONTRACT, "createUserRequest", "Alice", "a", "p", "SSN1", context=ctx)
        assert a.value.created_at == b.value.created_at == "2025-01-01T09:30:00.000Z"

    def test_stored_bytes_identical(self):
        first, second = build(), build()
        key = "\x00property\x00P1\x00"
        assert first.world_state.get(key) == second.world_state.get(key)

    def test_clone_diverges_independently(self, alice_registry):
        cloned = Registry(alice_registry.world_state.clone(), verbose=False)
        cloned.invoke(USER_CONTRACT, "rechargeAccount", "Alice", "SSN1", "upg1000")
        original = alice_registry.evaluate(REGISTRAR_CONTRACT, "viewUser", "Alice", "SSN1").unwrap()
        assert original.balance == 500
