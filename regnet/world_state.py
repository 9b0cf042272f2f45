"""
world_state.py - Versioned Key-Value World State

WorldState is the store every invocation reads from and commits to.
It is the only module that mutates stored state.

Key responsibilities:
    - Hands out a TransactionStub per invocation (begin)
    - Buffers that invocation's writes in the stub; nothing is visible to
      other invocations until commit
    - Commits a stub's write set atomically (all writes or none)
    - Detects conflicting invocations by checking the version of every key
      the stub read (optimistic concurrency); never retries
    - Deduplicates by tx_id and keeps the committed transaction log
    - Tracks a logical clock that supplies default invocation timestamps
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple
import hashlib

from .core import (
    ExecuteResult, InvocationContext, StateWrite,
    InvalidArgument, RegistryError,
    create_composite_key, split_composite_key,
    KEY_DELIMITER,
)


# ============================================================================
# TRANSACTION STUB
# ============================================================================

class TransactionStub:
    """
    Invocation-scoped view of the world state.

    Reads go to the write set first (so an invocation sees its own writes),
    then to committed state, recording the version observed. Writes and
    deletes only touch the write set until WorldState.commit().

    Implements the StateStub protocol.
    """

    def __init__(self, world: WorldState, tx_id: str, context: InvocationContext):
        self._world = world
        self._tx_id = tx_id
        self._timestamp = context.timestamp or world.current_time
        self._caller = context.caller
        # key -> version observed on first committed read (0 = absent)
        self.read_set: Dict[str, int] = {}
        # key -> new bytes, or None for a delete; insertion order preserved
        self.write_set: Dict[str, Optional[bytes]] = {}

    @property
    def tx_id(self) -> str:
        return self._tx_id

    @property
    def tx_timestamp(self) -> datetime:
        return self._timestamp

    @property
    def caller(self) -> str:
        return self._caller

    @property
    def world(self) -> WorldState:
        return self._world

    def _record_read(self, key: str) -> None:
        if key not in self.read_set:
            self.read_set[key] = self._world.version(key)

    def get_state(self, key: str) -> Optional[bytes]:
        """
        Read the value under key.

        Returns:
            The pending value if this invocation wrote the key, otherwise the
            committed value; None if absent or deleted
        """
        _check_key(key)
        if key in self.write_set:
            return self.write_set[key]
        self._record_read(key)
        return self._world.get(key)

    def put_state(self, key: str, value: bytes) -> None:
        """Stage value under key."""
        _check_key(key)
        if not isinstance(value, (bytes, bytearray)):
            raise InvalidArgument(f"State value must be bytes, got {type(value).__name__}", key=key)
        if not value:
            raise InvalidArgument("State value cannot be empty; use delete_state", key=key)
        self.write_set[key] = bytes(value)

    def delete_state(self, key: str) -> None:
        """Stage removal of key."""
        _check_key(key)
        self.write_set[key] = None

    def get_state_by_partial_composite_key(
        self, namespace: str, attributes: Sequence[str] = ()
    ) -> Iterator[Tuple[str, bytes]]:
        """
        Yield (key, value) for every key under a composite key prefix, in key order.

        Pending writes of this invocation are merged in; pending deletes hide
        committed rows.
        """
        prefix = create_composite_key(namespace, attributes)
        merged: Dict[str, Optional[bytes]] = {}
        for key, value in self._world.scan(prefix):
            self._record_read(key)
            merged[key] = value
        for key, value in self.write_set.items():
            if key.startswith(prefix):
                merged[key] = value
        for key in sorted(merged):
            value = merged[key]
            if value is not None:
                yield key, value

    def pending_writes(self) -> Tuple[StateWrite, ...]:
        """Write set as StateWrite records against the currently committed values."""
        return tuple(
            StateWrite(key=key, old_value=self._world.get(key), new_value=value)
            for key, value in self.write_set.items()
        )

    def __repr__(self) -> str:
        return (f"TransactionStub({self._tx_id}, {len(self.read_set)} reads, "
                f"{len(self.write_set)} writes)")


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise InvalidArgument(f"State key must be a non-empty string, got {key!r}")


# ============================================================================
# COMMITTED TRANSACTION
# ============================================================================

@dataclass(frozen=True, slots=True)
class CommittedTransaction:
    """
    An applied, immutable record of one invocation's writes.

    Attributes:
        tx_id: Invocation identifier (content hash unless supplied)
        function: "contract:function" that produced the writes
        caller: Submitting identity
        timestamp: Invocation timestamp
        writes: Applied writes with before/after values
        sequence_number: Monotonic position in the log
    """
    tx_id: str
    function: str
    caller: str
    timestamp: datetime
    writes: Tuple[StateWrite, ...]
    sequence_number: int
    touched_keys: frozenset = field(default=None)

    def __post_init__(self):
        if not self.writes:
            raise ValueError("CommittedTransaction must have at least one write")
        if self.touched_keys is None:
            object.__setattr__(self, 'touched_keys', frozenset(w.key for w in self.writes))

    def __repr__(self) -> str:
        w = 100  # Inner content width
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.tx_id)}│",
            f"├{bar}┤",
            f"│{pad('   function       : ' + self.function)}│",
            f"│{pad('   caller         : ' + self.caller)}│",
            f"│{pad('   timestamp      : ' + str(self.timestamp))}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"├{bar}┤",
            f"│{pad(' Writes (' + str(len(self.writes)) + '):')}│",
        ]
        for i, write in enumerate(self.writes):
            action = "DELETE" if write.is_delete else ("PUT" if write.old_value is None else "UPDATE")
            lines.append(f"│{pad(f'   [{i}] {action} {printable_key(write.key)}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


def printable_key(key: str) -> str:
    """Human-readable form of a storage key (composite keys as ns:attr/attr)."""
    if key.startswith(KEY_DELIMITER):
        try:
            namespace, attributes = split_composite_key(key)
        except InvalidArgument:
            return repr(key)
        return f"{namespace}:{'/'.join(attributes)}"
    return key


# ============================================================================
# WORLD STATE
# ============================================================================

class WorldState:
    """
    Versioned key-value store with invocation-atomic commits.

    Every key carries a version that increases on each committed write or
    delete. A stub records the version of each key it reads; commit rejects
    the whole write set if any of those versions moved.

    Thread Safety:
        Not thread-safe. Invocations are serialized by the caller.

    Example:
        world = WorldState("regnet")
        stub = world.begin(InvocationContext("alice"), "tx-1")
        stub.put_state("k", b"v")
        world.commit(stub)  # ExecuteResult.APPLIED
    """

    def __init__(
        self,
        name: str = "regnet",
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
    ):
        """
        Create an empty world state.

        Args:
            name: World state identifier
            initial_time: Starting logical time (default: 1970-01-01)
            verbose: Print commit and rejection summaries (default: True)
        """
        self.name = name
        self.verbose = verbose
        self._values: Dict[str, bytes] = {}
        # Versions survive deletes so a delete-then-recreate is still a change
        self._versions: Dict[str, int] = {}
        self.transaction_log: List[CommittedTransaction] = []
        self.seen_tx_ids: Set[str] = set()
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._next_sequence: int = 0

    # ========================================================================
    # READ ACCESS
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time; default timestamp for new invocations."""
        return self._current_time

    def get(self, key: str) -> Optional[bytes]:
        """Committed value under key, or None."""
        return self._values.get(key)

    def version(self, key: str) -> int:
        """Committed version of key (0 if never written)."""
        return self._versions.get(key, 0)

    def keys(self) -> List[str]:
        """All live keys, sorted."""
        return sorted(self._values)

    def scan(self, prefix: str) -> Iterator[Tuple[str, bytes]]:
        """Yield committed (key, value) pairs whose key starts with prefix, in key order."""
        for key in sorted(self._values):
            if key.startswith(prefix):
                yield key, self._values[key]

    def history(self, key: str) -> List[CommittedTransaction]:
        """Committed transactions that wrote or deleted key, oldest first."""
        return [tx for tx in self.transaction_log if key in tx.touched_keys]

    def state_hash(self) -> str:
        """
        Deterministic digest of all live keys, values and versions.

        Two world states that processed the same invocations in the same
        order have the same hash.
        """
        digest = hashlib.sha256()
        for key in sorted(self._values):
            digest.update(key.encode())
            digest.update(b"\x01")
            digest.update(self._values[key])
            digest.update(b"\x01")
            digest.update(str(self._versions[key]).encode())
            digest.update(b"\x02")
        return digest.hexdigest()

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # INVOCATIONS (Mutating)
    # ========================================================================

    def begin(self, context: InvocationContext, tx_id: str) -> TransactionStub:
        """Open a stub for one invocation."""
        if not tx_id:
            raise InvalidArgument("tx_id cannot be empty")
        return TransactionStub(self, tx_id, context)

    def validate(self, stub: TransactionStub) -> Tuple[bool, str]:
        """
        Check a stub's read set against committed versions.

        Returns:
            (True, "") if nothing the stub read has changed, otherwise
            (False, reason)
        """
        if stub.world is not self:
            return False, "stub belongs to a different world state"
        for key, seen in stub.read_set.items():
            current = self.version(key)
            if current != seen:
                return False, f"read conflict on {printable_key(key)}: version {seen} -> {current}"
        return True, ""

    def commit(self, stub: TransactionStub, function: str = "") -> ExecuteResult:
        """
        Apply a stub's write set atomically.

        Args:
            stub: Stub returned by begin() for this world state
            function: "contract:function" label recorded in the log

        Returns:
            ExecuteResult.APPLIED if the writes (if any) are now visible
            ExecuteResult.ALREADY_APPLIED if the tx_id was committed before
            ExecuteResult.REJECTED if the read set is stale; nothing written
        """
        if stub.tx_id in self.seen_tx_ids:
            if self.verbose:
                print(f"⚠️  ALREADY_APPLIED: tx_id={stub.tx_id}")
            return ExecuteResult.ALREADY_APPLIED

        valid, reason = self.validate(stub)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {stub.tx_id}: {reason}")
            return ExecuteResult.REJECTED

        # Read-only invocations leave no trace in the log
        if not stub.write_set:
            return ExecuteResult.APPLIED

        sequence = self._next_sequence
        self._next_sequence += 1
        tx = CommittedTransaction(
            tx_id=stub.tx_id,
            function=function or "unknown",
            caller=stub.caller,
            timestamp=stub.tx_timestamp,
            writes=stub.pending_writes(),
            sequence_number=sequence,
        )
        self._apply_writes(tx.writes)

        self.transaction_log.append(tx)
        self.seen_tx_ids.add(stub.tx_id)

        if self.verbose:
            self._print_tx_result(tx, "APPLIED", "✓")
        return ExecuteResult.APPLIED

    def _apply_writes(self, writes: Sequence[StateWrite]) -> None:
        for write in writes:
            if write.is_delete:
                self._values.pop(write.key, None)
            else:
                self._values[write.key] = write.new_value
            self._versions[write.key] = self._versions.get(write.key, 0) + 1

    def _print_tx_result(self, tx: CommittedTransaction, result: str, icon: str) -> None:
        """Print the boxed transaction summary with a result line appended."""
        lines = repr(tx).split('\n')
        w = 100
        bar = "─" * w
        text = ' ' + icon + ' ' + result
        lines[-1] = f"├{bar}┤"
        lines.append(f"│{text + ' ' * (w - len(text))}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))

    # ========================================================================
    # WORLD STATE OPERATIONS
    # ========================================================================

    def clone(self) -> WorldState:
        """
        Create an independent deep copy.

        Values, versions, the transaction log, seen tx_ids, the clock and
        configuration are all copied.
        """
        cloned = WorldState.__new__(WorldState)
        cloned.name = self.name
        cloned.verbose = self.verbose
        cloned._values = dict(self._values)
        cloned._versions = dict(self._versions)
        cloned.transaction_log = list(self.transaction_log)
        cloned.seen_tx_ids = set(self.seen_tx_ids)
        cloned._current_time = self._current_time
        cloned._next_sequence = self._next_sequence
        return cloned

    def replay(self) -> WorldState:
        """
        Rebuild a world state by re-applying the transaction log in order.

        Returns:
            New WorldState whose values and versions equal this one's

        Raises:
            RegistryError: If a logged write does not match the replayed state
        """
        replayed = WorldState(
            name=f"{self.name}_replayed",
            initial_time=datetime(1970, 1, 1),
            verbose=self.verbose,
        )
        for tx in self.transaction_log:
            for write in tx.writes:
                if replayed.get(write.key) != write.old_value:
                    raise RegistryError(
                        f"Replay failed at tx {tx.tx_id}: "
                        f"unexpected prior value for {printable_key(write.key)}"
                    )
            replayed._apply_writes(tx.writes)
            replayed.transaction_log.append(tx)
            replayed.seen_tx_ids.add(tx.tx_id)
            replayed._next_sequence = tx.sequence_number + 1
        replayed._current_time = self._current_time
        return replayed
