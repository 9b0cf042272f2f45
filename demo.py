#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Registry Step by Step

A walk through the property registration network. Each step builds on the
previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Accounts        - Deployment, user requests, approval, top-ups
  4-6:  Titles          - Registration requests, approval, listing
  7-8:  The Market      - Purchases, rejected purchases that change nothing
  9-11: Guarantees      - Idempotent resubmission, conflicts, replay

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from regnet import (
    Registry, RegistryConfig, WorldState, InvocationContext,
    USER_CONTRACT, REGISTRAR_CONTRACT,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    property_price: int = 300
    alice_top_up: str = "upg500"
    bob_top_up: str = "upg1000"
    credit_seller: bool = False


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show(result):
    """Print an InvocationResult in one line."""
    if result.ok:
        print(f"  {result.status.value:<16} tx={result.tx_id}  value={result.value!r}")
    else:
        print(f"  {result.status.value:<16} tx={result.tx_id}  {result.error.value}: {result.message}")
    return result


# ============================================================================
# PHASE 1: ACCOUNTS (Steps 1-3)
# ============================================================================

def step_01_deploy():
    """Deploy both contracts on an empty world state."""
    step_header(1, "Deploying the Network",
        "Two contracts share one world state: regnet.user and regnet.registrar.")

    print(">>> world = WorldState('tutorial', initial_time=datetime(2025, 1, 1, 9, 0))")
    print(">>> registry = Registry(world)")
    world = WorldState("tutorial", initial_time=CONFIG.start_time, verbose=True)
    registry = Registry(world, RegistryConfig(credit_seller=CONFIG.credit_seller))

    section_header("Deployed Functions")
    for contract in (USER_CONTRACT, REGISTRAR_CONTRACT):
        print(f"{contract}: {', '.join(registry.functions(contract))}")

    section_header("Key Insight")
    print("""
    Deployment writes nothing. The world state is empty and the
    transaction log has no entries until the first invocation commits.
    """)
    return registry


def step_02_user_requests(registry: Registry):
    """Users ask for accounts; the registrar approves them."""
    step_header(2, "Requesting and Approving Accounts",
        "An account exists only after the registrar approves its request.")

    section_header("Requests")
    show(registry.invoke(USER_CONTRACT, "createUserRequest", "Alice", "alice@example.com", "555-0100", "SSN1"))
    show(registry.invoke(USER_CONTRACT, "createUserRequest", "Bob", "bob@example.com", "555-0101", "SSN2"))

    pending = registry.evaluate(REGISTRAR_CONTRACT, "listUserRequests").unwrap()
    print(f"\nPending requests: {[r.name for r in pending]}")

    section_header("Approvals")
    show(registry.invoke(REGISTRAR_CONTRACT, "approveNewUser", "Alice", "SSN1"))
    show(registry.invoke(REGISTRAR_CONTRACT, "approveNewUser", "Bob", "SSN2"))

    section_header("Key Insight")
    print("""
    Each approval wrote the User and deleted the request in ONE invocation.
    Every new account starts with exactly 0 upgradCoins.
    """)
    return registry


def step_03_top_up(registry: Registry):
    """Recharge accounts with bank transaction codes."""
    step_header(3, "Topping Up",
        "Only codes in the top-up table credit an account.")

    show(registry.invoke(USER_CONTRACT, "rechargeAccount", "Alice", "SSN1", CONFIG.alice_top_up))
    show(registry.invoke(USER_CONTRACT, "rechargeAccount", "Bob", "SSN2", CONFIG.bob_top_up))

    section_header("An Unknown Code")
    show(registry.invoke(USER_CONTRACT, "rechargeAccount", "Bob", "SSN2", "upg9999"))
    return registry


# ============================================================================
# PHASE 2: TITLES (Steps 4-6)
# ============================================================================

def step_04_register_title(registry: Registry):
    """Alice asks for P1 to be registered."""
    step_header(4, "Registering a Title",
        "Only an approved user can ask for a title to be registered.")

    show(registry.invoke(USER_CONTRACT, "propertyRegistrationRequest",
                         "P1", str(CONFIG.property_price), "Alice", "SSN1"))

    section_header("A Stranger Tries")
    show(registry.invoke(USER_CONTRACT, "propertyRegistrationRequest", "P2", "100", "Mallory", "SSN6"))
    return registry


def step_05_approve_title(registry: Registry):
    """The registrar approves P1."""
    step_header(5, "Approving the Title",
        "Approval promotes the request to a Property with the same owner and price.")

    show(registry.invoke(REGISTRAR_CONTRACT, "approvePropertyRequest", "P1"))
    prop = registry.evaluate(USER_CONTRACT, "viewProperty", "P1").unwrap()
    print(f"\nOwner: {prop.owner!r}  Price: {prop.price}  Status: {prop.status}")
    return registry


def step_06_list_for_sale(registry: Registry):
    """Only the owner can list the title."""
    step_header(6, "Listing for Sale",
        "Status changes are checked against the recorded owner.")

    section_header("Bob Tries to List Alice's Title")
    show(registry.invoke(USER_CONTRACT, "updateProperty", "P1", "onSale", "Bob", "SSN2"))

    section_header("Alice Lists It")
    show(registry.invoke(USER_CONTRACT, "updateProperty", "P1", "onSale", "Alice", "SSN1"))
    return registry


# ============================================================================
# PHASE 3: THE MARKET (Steps 7-8)
# ============================================================================

def step_07_purchase(registry: Registry):
    """Bob buys P1."""
    step_header(7, "Buying a Title",
        "The buyer is debited and the title transferred in one invocation.")

    show(registry.invoke(USER_CONTRACT, "purchaseProperty", "P1", "Bob", "SSN2"))

    section_header("After the Sale")
    for name, ssn in (("Alice", "SSN1"), ("Bob", "SSN2")):
        user = registry.evaluate(USER_CONTRACT, "viewUser", name, ssn).unwrap()
        print(f"{name:<6} upgradCoins: {user.balance}")
    prop = registry.evaluate(USER_CONTRACT, "viewProperty", "P1").unwrap()
    print(f"P1 owner: {prop.owner!r}  status: {prop.status}")

    section_header("Key Insight")
    print("""
    The seller is not credited unless the registry is configured with
    RegistryConfig(credit_seller=True). Set CONFIG.credit_seller to try it.
    """)
    return registry


def step_08_rejected_purchase(registry: Registry):
    """A purchase of an unlisted title changes nothing."""
    step_header(8, "A Purchase That Fails",
        "A failed invocation commits none of its writes.")

    world = registry.world_state
    before = world.state_hash()
    show(registry.invoke(USER_CONTRACT, "purchaseProperty", "P1", "Alice", "SSN1"))
    print(f"\nState hash unchanged: {world.state_hash() == before}")
    return registry


# ============================================================================
# PHASE 4: GUARANTEES (Steps 9-11)
# ============================================================================

def step_09_idempotency(registry: Registry):
    """Resubmitting a transaction id is harmless."""
    step_header(9, "Idempotent Resubmission",
        "A client that resends a committed tx_id does not pay twice.")

    show(registry.invoke(USER_CONTRACT, "rechargeAccount", "Alice", "SSN1", "upg100", tx_id="bank-0001"))
    show(registry.invoke(USER_CONTRACT, "rechargeAccount", "Alice", "SSN1", "upg100", tx_id="bank-0001"))
    alice = registry.evaluate(USER_CONTRACT, "viewUser", "Alice", "SSN1").unwrap()
    print(f"\nAlice upgradCoins: {alice.balance}")
    return registry


def step_10_conflict(registry: Registry):
    """Two invocations race for the same title."""
    step_header(10, "Conflicting Invocations",
        "When two invocations read the same record, only the first to commit wins.")

    later = registry.world_state.current_time + timedelta(hours=1)
    registry.world_state.advance_time(later)
    registry.invoke(USER_CONTRACT, "updateProperty", "P1", "onSale", "Bob", "SSN2",
                    context=InvocationContext("bob-client"))

    print(">>> first = registry.prepare(... 'purchaseProperty', 'P1', 'Alice', 'SSN1')")
    print(">>> second = registry.prepare(... 'updateProperty', 'P1', 'registered', 'Bob', 'SSN2')")
    first = registry.prepare(USER_CONTRACT, "purchaseProperty", "P1", "Alice", "SSN1")
    second = registry.prepare(USER_CONTRACT, "updateProperty", "P1", "registered", "Bob", "SSN2")

    show(registry.submit(second))
    show(registry.submit(first))
    return registry


def step_11_replay(registry: Registry):
    """Rebuild the world state from the log."""
    step_header(11, "Replay",
        "The transaction log alone reproduces every key, value and version.")

    world = registry.world_state
    world.verbose = False
    replayed = world.replay()
    print(f"Transactions in log: {len(world.transaction_log)}")
    print(f"Original hash:       {world.state_hash()}")
    print(f"Replayed hash:       {replayed.state_hash()}")
    print(f"Identical:           {world.state_hash() == replayed.state_hash()}")
    return registry


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       PROPERTY REGISTRATION NETWORK - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    steps = [
        step_02_user_requests,
        step_03_top_up,
        step_04_register_title,
        step_05_approve_title,
        step_06_list_for_sale,
        step_07_purchase,
        step_08_rejected_purchase,
        step_09_idempotency,
        step_10_conflict,
        step_11_replay,
    ]

    registry = step_01_deploy()
    wait_for_enter()
    for step in steps:
        registry = step(registry)
        wait_for_enter()

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See regnet/contracts/*.py for the contract functions
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
