"""
registry.py - Invocation Surface

Registry deploys the user and registrar contracts on a WorldState and runs
invocations against them:

    registry = Registry(verbose=False)
    result = registry.invoke("regnet.user", "createUserRequest",
                             "Alice", "alice@example.com", "555-0100", "SSN1")
    if not result.ok:
        print(result.error, result.message)

Each invocation is executed against its own TransactionStub and either
commits every write it made or none of them:

    prepare()  resolve function, open stub, run it        (no commit)
    submit()   commit the stub's write set                (may conflict)
    invoke()   submit(prepare(...))
    evaluate() prepare(...) and discard; for queries

Failures come back as an InvocationResult carrying the ErrorKind and the
offending identifiers. Exceptions that are not RegistryErrors are
programming errors and propagate; their stub is discarded.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import inspect
from typing import Any, Callable, Dict, List, Optional, Tuple

from .core import (
    ExecuteResult, ErrorKind, InvocationContext, RegistryConfig,
    RegistryError, InvalidArgument, TransactionConflict,
    USER_CONTRACT, REGISTRAR_CONTRACT,
    compute_tx_id,
)
from .world_state import WorldState, TransactionStub
from .contracts import USER_FUNCTIONS, REGISTRAR_FUNCTIONS


# ============================================================================
# RESULTS
# ============================================================================

@dataclass(frozen=True, slots=True)
class InvocationResult:
    """
    Outcome of one invocation.

    Attributes:
        tx_id: Transaction identifier
        status: APPLIED, ALREADY_APPLIED, or REJECTED (failed or conflicted)
        value: What the contract function returned (None on failure)
        error: ErrorKind of the failure, None on success
        message: Human-readable failure message
        identifiers: Offending identifiers from the failure
    """
    tx_id: str
    status: ExecuteResult
    value: Any = None
    error: Optional[ErrorKind] = None
    message: str = ""
    identifiers: Dict[str, Any] = field(default_factory=dict)
    exception: Optional[RegistryError] = field(default=None, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """
        Return the value, or raise the typed error the invocation failed with.

        Raises:
            RegistryError: The subclass matching self.error
        """
        if self.exception is not None:
            raise self.exception
        return self.value

    @classmethod
    def failed(cls, tx_id: str, error: RegistryError) -> InvocationResult:
        return cls(
            tx_id=tx_id,
            status=ExecuteResult.REJECTED,
            error=error.kind,
            message=str(error),
            identifiers=dict(error.identifiers),
            exception=error,
        )


@dataclass(slots=True)
class PreparedInvocation:
    """
    An executed but uncommitted invocation.

    Attributes:
        contract: Contract name
        function: Network function name
        stub: The stub holding the read and write sets
        value: Return value of the contract function
        error: The RegistryError it raised, if any
    """
    contract: str
    function: str
    stub: Optional[TransactionStub]
    tx_id: str
    value: Any = None
    error: Optional[RegistryError] = None

    @property
    def label(self) -> str:
        return f"{self.contract}:{self.function}"


# ============================================================================
# REGISTRY
# ============================================================================

ContractTable = Dict[str, Dict[str, Callable]]


class Registry:
    """
    The deployed property registration network.

    Attributes:
        world_state: Committed state shared by both contracts
        config: Behaviour switches passed to config-aware contract functions
        contracts: Contract name -> {function name -> implementation}

    Thread Safety:
        Not thread-safe. Concurrency is modelled with prepare()/submit().
    """

    def __init__(
        self,
        world_state: Optional[WorldState] = None,
        config: Optional[RegistryConfig] = None,
        verbose: bool = True,
    ):
        """
        Deploy both contracts.

        Args:
            world_state: State to deploy onto (default: a fresh WorldState)
            config: Contract configuration (default: RegistryConfig())
            verbose: Print deployments and failed invocations (default: True)
        """
        self.world_state = world_state if world_state is not None else WorldState(verbose=verbose)
        self.config = config or RegistryConfig()
        self.verbose = verbose
        self.contracts: ContractTable = {
            USER_CONTRACT: dict(USER_FUNCTIONS),
            REGISTRAR_CONTRACT: dict(REGISTRAR_FUNCTIONS),
        }
        self._submissions = 0

        for contract in self.contracts:
            message = self.evaluate(contract, "instantiate").unwrap()
            if self.verbose:
                print(f"✓ {contract}: {message}")

    # ========================================================================
    # DISPATCH
    # ========================================================================

    def _resolve(self, contract: str, function: str) -> Callable:
        functions = self.contracts.get(contract)
        if functions is None:
            raise InvalidArgument(f"Unknown contract {contract!r}", contract=contract)
        fn = functions.get(function)
        if fn is None:
            raise InvalidArgument(
                f"Unknown function {function!r} on contract {contract}",
                contract=contract, function=function,
            )
        return fn

    def _bind(self, fn: Callable, stub: TransactionStub, args: Tuple[Any, ...]) -> Callable[[], Any]:
        """Bind network arguments, adding config for functions that accept it."""
        signature = inspect.signature(fn)
        kwargs = {"config": self.config} if "config" in signature.parameters else {}
        try:
            signature.bind(stub, *args, **kwargs)
        except TypeError as e:
            raise InvalidArgument(
                f"Incorrect arguments for {fn.__name__}: {e}", arg_count=len(args),
            ) from e
        return lambda: fn(stub, *args, **kwargs)

    def _context(self, context: Optional[InvocationContext]) -> InvocationContext:
        context = context or InvocationContext()
        if context.timestamp is None:
            context = InvocationContext(caller=context.caller, timestamp=self.world_state.current_time)
        return context

    # ========================================================================
    # INVOCATION
    # ========================================================================

    def prepare(
        self,
        contract: str,
        function: str,
        *args: Any,
        context: Optional[InvocationContext] = None,
        tx_id: Optional[str] = None,
    ) -> PreparedInvocation:
        """
        Execute a contract function against a fresh stub without committing.

        Args:
            contract: Contract name (e.g. "regnet.user")
            function: Network function name (e.g. "createUserRequest")
            *args: Function arguments
            context: Caller and timestamp (default: anonymous, current time)
            tx_id: Explicit transaction id (default: derived from content)

        Returns:
            PreparedInvocation; its error is set if the function failed
        """
        context = self._context(context)
        if tx_id is None:
            tx_id = compute_tx_id(contract, function, args, context, nonce=self._submissions)
            self._submissions += 1

        prepared = PreparedInvocation(contract=contract, function=function, stub=None, tx_id=tx_id)
        try:
            fn = self._resolve(contract, function)
            prepared.stub = self.world_state.begin(context, tx_id)
            prepared.value = self._bind(fn, prepared.stub, args)()
        except RegistryError as e:
            prepared.error = e
            prepared.value = None
        return prepared

    def submit(self, prepared: PreparedInvocation) -> InvocationResult:
        """
        Commit a prepared invocation.

        Returns:
            InvocationResult; CONFLICT if something it read has changed since
            prepare(), the function's own error if it failed
        """
        if prepared.error is not None:
            self._print_failure(prepared.tx_id, prepared.label, prepared.error)
            return InvocationResult.failed(prepared.tx_id, prepared.error)

        stub = prepared.stub
        valid, reason = self.world_state.validate(stub)
        status = self.world_state.commit(stub, function=prepared.label)

        if status == ExecuteResult.REJECTED:
            conflict = TransactionConflict(
                f"Transaction {prepared.tx_id} conflicted: {reason or 'stale read set'}",
                tx_id=prepared.tx_id,
            )
            return InvocationResult.failed(prepared.tx_id, conflict)

        if status == ExecuteResult.ALREADY_APPLIED:
            return InvocationResult(tx_id=prepared.tx_id, status=status)

        return InvocationResult(tx_id=prepared.tx_id, status=status, value=prepared.value)

    def invoke(
        self,
        contract: str,
        function: str,
        *args: Any,
        context: Optional[InvocationContext] = None,
        tx_id: Optional[str] = None,
    ) -> InvocationResult:
        """
        Execute and commit one invocation.

        A tx_id that has already been committed is not re-executed.

        Returns:
            InvocationResult
        """
        if tx_id is not None and tx_id in self.world_state.seen_tx_ids:
            if self.verbose:
                print(f"⚠️  ALREADY_APPLIED: tx_id={tx_id}")
            return InvocationResult(tx_id=tx_id, status=ExecuteResult.ALREADY_APPLIED)
        return self.submit(self.prepare(contract, function, *args, context=context, tx_id=tx_id))

    def evaluate(
        self,
        contract: str,
        function: str,
        *args: Any,
        context: Optional[InvocationContext] = None,
    ) -> InvocationResult:
        """
        Execute one invocation and discard its writes.

        status is APPLIED when the function succeeded and REJECTED when it
        failed; nothing is committed either way.
        """
        prepared = self.prepare(contract, function, *args, context=context, tx_id="evaluate")
        if prepared.error is not None:
            return InvocationResult.failed(prepared.tx_id, prepared.error)
        return InvocationResult(
            tx_id=prepared.tx_id, status=ExecuteResult.APPLIED, value=prepared.value,
        )

    def functions(self, contract: str) -> List[str]:
        """Network function names exposed by a contract."""
        if contract not in self.contracts:
            raise InvalidArgument(f"Unknown contract {contract!r}", contract=contract)
        return sorted(self.contracts[contract])

    def _print_failure(self, tx_id: str, label: str, error: RegistryError) -> None:
        if self.verbose:
            print(f"✗ FAILED: {label} tx={tx_id} {error.kind.value}: {error}")

    def __repr__(self) -> str:
        return (f"Registry({self.world_state.name}, contracts={sorted(self.contracts)}, "
                f"{len(self.world_state.transaction_log)} transactions)")
