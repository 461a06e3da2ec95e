"""
In-process ledger runtime.

Executes transactions (ordered lists of instructions) against a ``Ledger``
with all-or-nothing semantics, and gives programs an ``InvokeContext`` for
cross-program calls, derived signatures, the clock, rent and logging.

Usage:
    >>> runtime = Runtime()
    >>> runtime.airdrop(payer.pubkey(), 10_000_000_000)
    >>> result = runtime.process_transaction([ix], signers=[payer])
    >>> result.unwrap()
"""

from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from ..config.loader import PdaswapConfig
from ..constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    NATIVE_LOADER_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from ..crypto.address import create_program_address
from ..logger import configure_logging, get_logger
from ..exceptions import (
    CallDepthExceeded,
    IncorrectProgramId,
    MissingSignature,
    NotEnoughAccountKeys,
    ProgramError,
    ReadonlyAccountModified,
    UnbalancedInstruction,
)
from .account import Account, AccountInfo
from .ledger import Ledger
from .sysvars import Clock, Rent

logger = get_logger(__name__)

Processor = Callable[["InvokeContext", Pubkey, List[AccountInfo], bytes], None]
Signer = Union[Keypair, Pubkey]


class TransactionResult:
    """Result of executing a single transaction."""

    __slots__ = ("error", "logs", "instruction_index")

    def __init__(
        self,
        error: Optional[ProgramError] = None,
        logs: Optional[List[str]] = None,
        instruction_index: Optional[int] = None,
    ):
        self.error = error
        self.logs = logs or []
        self.instruction_index = instruction_index

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def code(self) -> Optional[int]:
        return None if self.error is None else self.error.code

    def unwrap(self) -> "TransactionResult":
        """Raise the failing instruction's error, or return self."""
        if self.error is not None:
            raise self.error
        return self

    def __repr__(self) -> str:
        if self.ok:
            return f"TransactionResult(ok, {len(self.logs)} log lines)"
        return f"TransactionResult(failed at #{self.instruction_index}: {self.error!r})"


class InvokeContext:
    """
    What a running program can see of the runtime.

    One context exists per invocation frame. ``depth`` is 0 for a top-level
    instruction and grows by one with every cross-program call.
    """

    def __init__(self, runtime: "Runtime", program_id: Pubkey, depth: int, logs: List[str]):
        self._runtime = runtime
        self.program_id = program_id
        self.depth = depth
        self._logs = logs

    @property
    def clock(self) -> Clock:
        return self._runtime.ledger.clock

    @property
    def rent(self) -> Rent:
        return self._runtime.ledger.rent

    def log(self, message: str) -> None:
        self._logs.append(f"Program log: {message}")
        logger.debug("[%s] %s", self.program_id, message)

    def invoke(self, instruction: Instruction, account_infos: Sequence[AccountInfo]) -> None:
        self.invoke_signed(instruction, account_infos, ())

    def invoke_signed(
        self,
        instruction: Instruction,
        account_infos: Sequence[AccountInfo],
        signers_seeds: Iterable[Sequence[bytes]],
    ) -> None:
        """
        Call another program. Each seed list in *signers_seeds* (bump
        included) lets the derived address of this program sign the call.

        A callee account may be a signer only if it is one here or is one of
        those derived addresses, and may be writable only if it is writable
        here.
        """
        depth = self.depth + 1
        if depth > self._runtime.max_invoke_depth:
            raise CallDepthExceeded(f"invoke depth {depth} exceeds {self._runtime.max_invoke_depth}")

        pda_signers = {create_program_address(seeds, self.program_id) for seeds in signers_seeds}
        by_key: Dict[Pubkey, AccountInfo] = {}
        for info in account_infos:
            by_key.setdefault(info.key, info)

        for meta in instruction.accounts:
            caller_info = by_key.get(meta.pubkey)
            if caller_info is None:
                raise NotEnoughAccountKeys(f"{meta.pubkey} was not passed to the call")
            if meta.is_signer and not (caller_info.is_signer or meta.pubkey in pda_signers):
                raise MissingSignature(f"{meta.pubkey} cannot sign for {instruction.program_id}")
            if meta.is_writable and not caller_info.is_writable:
                raise ReadonlyAccountModified(f"{meta.pubkey} is read-only in the caller")

        self._runtime._execute(
            instruction.program_id,
            instruction.accounts,
            bytes(instruction.data),
            depth,
            self._logs,
        )


class Runtime:
    """
    Program registry and transaction executor over one ``Ledger``.

    The system, token and associated-token programs are always present.
    ``load_programs=True`` also registers the escrow and AMM programs at the
    ids named in the configuration. An explicit ``config`` also applies its
    ``[logging]`` section to the process-wide log handlers.
    """

    def __init__(
        self,
        config: Optional[PdaswapConfig] = None,
        ledger: Optional[Ledger] = None,
        load_programs: bool = True,
    ):
        if config is not None:
            configure_logging(config.logging.level, config.logging.file_output, config.logging.log_file)
        self.config = config or PdaswapConfig()
        ledger_cfg = self.config.ledger
        self.ledger = ledger or Ledger(
            rent=Rent(ledger_cfg.lamports_per_byte_year, ledger_cfg.exemption_threshold),
            clock=Clock(slot=ledger_cfg.slot, unix_timestamp=ledger_cfg.unix_timestamp),
        )
        self.max_invoke_depth = ledger_cfg.max_invoke_depth
        self._programs: Dict[Pubkey, Processor] = {}

        # Lazy imports to avoid circular dependencies
        from . import associated_token, system_program, token_program

        self.add_program(SYSTEM_PROGRAM_ID, system_program.process_instruction)
        self.add_program(TOKEN_PROGRAM_ID, token_program.process_instruction)
        self.add_program(ASSOCIATED_TOKEN_PROGRAM_ID, associated_token.process_instruction)

        if load_programs:
            from ..amm.processor import process_instruction as amm_process
            from ..escrow.processor import process_instruction as escrow_process

            self.add_program(self.config.programs.escrow, escrow_process)
            self.add_program(self.config.programs.amm, amm_process)

    # ── setup ────────────────────────────────────────────────────────

    def add_program(self, program_id: Pubkey, processor: Processor) -> None:
        """Register *processor* as the executable program at *program_id*."""
        self._programs[program_id] = processor
        self.ledger.set(program_id, Account(lamports=1, owner=NATIVE_LOADER_ID, executable=True))
        logger.debug("Registered program %s", program_id)

    @property
    def escrow_program_id(self) -> Pubkey:
        return self.config.programs.escrow

    @property
    def amm_program_id(self) -> Pubkey:
        return self.config.programs.amm

    def airdrop(self, key: Pubkey, lamports: int) -> None:
        """Credit *lamports* to *key*, creating a system account if needed."""
        self.ledger.load(key).lamports += lamports
        self.ledger.commit()

    def set_account(self, key: Pubkey, account: Account) -> None:
        self.ledger.set(key, account.copy())

    def get_account(self, key: Pubkey) -> Optional[Account]:
        return self.ledger.get(key)

    def warp_to(self, unix_timestamp: int, slot: Optional[int] = None) -> None:
        self.ledger.clock.unix_timestamp = unix_timestamp
        if slot is not None:
            self.ledger.clock.slot = slot

    # ── execution ────────────────────────────────────────────────────

    def process_transaction(
        self,
        instructions: Sequence[Instruction],
        signers: Iterable[Signer] = (),
    ) -> TransactionResult:
        """
        Run *instructions* in order. Either every instruction succeeds and the
        ledger commits, or the ledger is reverted to its state before the
        first one and the failing instruction's error is returned.
        """
        signer_keys = {s.pubkey() if isinstance(s, Keypair) else s for s in signers}
        logs: List[str] = []
        snapshot_id = self.ledger.snapshot()
        index = 0
        try:
            for index, instruction in enumerate(instructions):
                for meta in instruction.accounts:
                    if meta.is_signer and meta.pubkey not in signer_keys:
                        raise MissingSignature(f"transaction is not signed by {meta.pubkey}")
                self._execute(
                    instruction.program_id,
                    instruction.accounts,
                    bytes(instruction.data),
                    0,
                    logs,
                )
        except ProgramError as e:
            self.ledger.revert(snapshot_id)
            logger.info(f"Transaction failed at instruction {index}: {e!r}")
            return TransactionResult(error=e, logs=logs, instruction_index=index)
        except Exception:
            self.ledger.revert(snapshot_id)
            raise

        self.ledger.commit()
        logger.debug("Committed transaction of %d instruction(s)", len(instructions))
        return TransactionResult(logs=logs)

    def _execute(
        self,
        program_id: Pubkey,
        metas: Sequence[AccountMeta],
        data: bytes,
        depth: int,
        logs: List[str],
    ) -> None:
        processor = self._programs.get(program_id)
        if processor is None:
            raise IncorrectProgramId(f"{program_id} is not an executable program")

        infos = [
            AccountInfo(
                meta.pubkey,
                self.ledger.load(meta.pubkey),
                program_id,
                is_signer=meta.is_signer,
                is_writable=meta.is_writable,
            )
            for meta in metas
        ]
        touched = {info.key for info in infos}
        lamports_before = sum(self.ledger.load(k).lamports for k in touched)

        logs.append(f"Program {program_id} invoke [{depth + 1}]")
        ctx = InvokeContext(self, program_id, depth, logs)
        try:
            processor(ctx, program_id, infos, data)
        except ProgramError as e:
            logs.append(f"Program {program_id} failed: {e}")
            raise

        lamports_after = sum(self.ledger.load(k).lamports for k in touched)
        if lamports_before != lamports_after:
            raise UnbalancedInstruction(
                f"{program_id}: {lamports_before} lamports before, {lamports_after} after"
            )
        logs.append(f"Program {program_id} success")
