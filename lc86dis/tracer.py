"""
Code Tracer - control-flow discovery over an LC86K image

Starting from an entry point, the tracer follows execution the way the
CPU would: instruction after instruction, into every CALL and branch
target, until a return, an unconditional jump or an anomaly ends the
walk. Every byte it touches is classified in the AddressSpace:

    first byte of an instruction   CODE (CODE_ENTRY for walk entries)
    operand bytes                  INVALID (can't start an instruction)

Alongside the classification it tracks which RAM bank (PSW bit 1) is
selected, so the renderer can name direct addresses:

    SET1 PSW,1   ($F9 $01)   -> bank 1
    CLR1 PSW,1   ($D9 $01)   -> bank 0
    POP  PSW     ($71 $01)   -> unknown

Walks are never repeated: reaching an address that is already code only
labels the walk entry and joins the arriving bank into that address, so
code reached under both banks ends up VARIOUS. A branch into data, into
the middle of another instruction, or onto an illegal opcode is an
anomaly. It is logged with the current trace stack and ends the walk
that found it. Whether the failure also ends the walks that led there
depends on strict mode:

    lenient (default)  calls and conditional branches fall through
                       anyway; the bad path is assumed never taken
    strict             the whole dependent walk ("vein") is killed

Calls into BIOS ROM go through NOT1 EXT,0 ($B8 $0D), which swaps the
code bank. FIRMWARE_CALLS maps the address after it to the address the
firmware comes back to.

The walk uses an explicit frame stack instead of Python recursion, as
call graphs in real images nest deeper than the interpreter stack.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple, Union

from .memory import AddressSpace, Bank, Usage, MAX_ADDRESS
from .opcodes import InstructionSet, Instruction, LC86K_OPCODES, decode
from .tables import SymbolTables, DEFAULT_TABLES

log = logging.getLogger(__name__)

# Only the first TRACE_DEPTH open walks are shown in diagnostics
TRACE_DEPTH = 200

# (opcode, operand) -> bank selected from the next instruction on
BANK_SWITCHES = {
    (0xF9, 0x01): Bank.BANK1,    # SET1 PSW,1
    (0xD9, 0x01): Bank.BANK0,    # CLR1 PSW,1
    (0x71, 0x01): Bank.UNKNOWN,  # POP  PSW
}

FIRMWARE_SWITCH = (0xB8, 0x0D)   # NOT1 EXT,0

_NON_CODE = (Usage.DATA, Usage.GRAPHICS, Usage.FONT8, Usage.TEXT, Usage.UNUSED)


class Outcome(Enum):
    VALID = 'VALID'
    INVALID = 'INVALID'


class AnomalyKind(Enum):
    NON_CODE_TARGET = 'branch exists to data/graphics/unused code'
    INVALID_TARGET = 'branch exists to invalid code'
    ILLEGAL_OPCODE = 'illegal instruction found'
    MISALIGNED = 'misaligned code found'
    UNMAPPED_FIRMWARE_CALL = 'NOT1 EXT,0 encountered at unexpected address'


@dataclass(frozen=True)
class Anomaly:
    """A recoverable problem found while tracing"""
    kind: AnomalyKind
    address: int
    trace: Tuple[int, ...]

    def __str__(self):
        stack = " ".join(f"{a:04x}" for a in self.trace)
        return f"{self.kind.value} at ${self.address:04x}  (trace stack: {stack})"


class TraceError(Exception):
    """Raised when the tracer is asked to walk outside the 64K space."""
    def __init__(self, address: int, trace: Tuple[int, ...] = ()):
        self.address = address
        self.trace = trace
        super().__init__(f"attempted to map illegal address {address:04x}")


class _Resume(Enum):
    FALLTHROUGH = 'FALLTHROUGH'   # after a call or conditional branch
    TAIL = 'TAIL'                 # after a jump: the sub-walk's result is ours


@dataclass
class _Frame:
    """One open walk"""
    entry: int
    pin: int
    bank: Bank
    resume: Optional[_Resume] = None
    pending_length: int = 0


_Step = Union[Outcome, int, None]


class CodeTracer:
    """Classifies reachable code in an AddressSpace.

    Usage:
        tracer = CodeTracer(space, strict=False)
        tracer.trace(0x0000, Bank.BANK1)
        for anomaly in tracer.anomalies:
            print(anomaly)
    """

    def __init__(self, space: AddressSpace,
                 tables: SymbolTables = DEFAULT_TABLES,
                 iset: InstructionSet = LC86K_OPCODES,
                 strict: bool = False,
                 bios: bool = False):
        self.space = space
        self.tables = tables
        self.iset = iset
        self.strict = strict
        self.bios = bios
        self.anomalies: List[Anomaly] = []
        self._stack: List[_Frame] = []

    # ══════════════════════════════════════════════
    # Public API
    # ══════════════════════════════════════════════

    def trace(self, address: int, bank: Bank = Bank.UNKNOWN) -> Outcome:
        """Walk all code reachable from address, entered with bank selected."""
        if self._stack:
            raise RuntimeError("CodeTracer.trace() is not re-entrant")
        self._stack = [_Frame(address, address, Bank(bank))]
        returned: Optional[Outcome] = None
        try:
            while True:
                frame = self._stack[-1]
                step: _Step = None
                if returned is not None:
                    step = self._resume(frame, returned)
                    returned = None
                if step is None:
                    step = self._walk(frame)

                if isinstance(step, Outcome):
                    self._stack.pop()
                    if not self._stack:
                        return step
                    returned = step
                else:
                    self._stack.append(_Frame(step, step, frame.bank))
        finally:
            self._stack = []

    def call_trace(self) -> Tuple[int, ...]:
        """Entry addresses of the open walks, outermost first"""
        return tuple(f.entry for f in self._stack[:TRACE_DEPTH])

    # ══════════════════════════════════════════════
    # Walking
    # ══════════════════════════════════════════════

    def _walk(self, frame: _Frame) -> _Step:
        """Run frame forward until it ends (Outcome) or needs a sub-walk (address)."""
        space = self.space
        while True:
            pin = frame.pin
            if not 0 <= pin <= MAX_ADDRESS:
                raise TraceError(pin, self.call_trace())

            usage = space.get_usage(pin)
            if usage in _NON_CODE:
                self._report(AnomalyKind.NON_CODE_TARGET, pin)
                # a walk entered straight into data keeps the data's class
                if space.get_usage(frame.entry).is_code:
                    space.set_usage(frame.entry, Usage.INVALID)
                return Outcome.INVALID
            if usage is Usage.INVALID:
                self._report(AnomalyKind.INVALID_TARGET, pin)
                return Outcome.INVALID

            head = (space.byte(pin), space.byte(pin + 1))
            bank = BANK_SWITCHES.get(head, frame.bank)
            if usage is not Usage.UNKNOWN:
                # already walked: merge the arriving bank, don't walk again
                if usage.is_code:
                    space.join_bank(pin, bank)
                return self._finish(frame, Outcome.VALID)

            frame.bank = bank
            space.set_usage(pin, Usage.CODE)
            space.join_bank(pin, frame.bank)

            inst, operands = decode(space.mem, pin, self.iset)
            if inst.is_illegal:
                self._report(AnomalyKind.ILLEGAL_OPCODE, pin)
                return Outcome.INVALID

            if inst.is_call or inst.is_conditional_branch:
                frame.resume = _Resume.FALLTHROUGH
                frame.pending_length = inst.length
                return operands.target
            if inst.is_jump:
                result = self._claim_operands(frame, inst.length)
                if result is not None:
                    return result
                frame.resume = _Resume.TAIL
                return operands.target
            if inst.is_return:
                return self._finish(frame, Outcome.VALID)
            if head == FIRMWARE_SWITCH:
                return self._firmware_call(frame, pin, inst)

            result = self._advance(frame, inst.length)
            if result is not None:
                return result

    def _resume(self, frame: _Frame, outcome: Outcome) -> _Step:
        """Continue frame after the sub-walk it started returned outcome."""
        if frame.resume is _Resume.TAIL:
            return self._finish(frame, outcome)
        if outcome is Outcome.INVALID and self.strict:
            return self._finish(frame, Outcome.INVALID)
        return self._advance(frame, frame.pending_length)

    def _advance(self, frame: _Frame, length: int) -> Optional[Outcome]:
        """Step past the instruction at frame.pin, claiming its operand bytes."""
        result = self._claim_operands(frame, length)
        if result is not None:
            return result
        frame.pin += length
        frame.resume = None
        return None

    def _claim_operands(self, frame: _Frame, length: int) -> Optional[Outcome]:
        """Mark the operand bytes of the instruction at frame.pin INVALID.

        Returns Outcome.INVALID (and ends the walk) when one of them is
        already classified, i.e. the instruction overlaps known bytes.
        """
        space = self.space
        for pin in range(frame.pin + 1, frame.pin + length):
            if pin > MAX_ADDRESS:
                raise TraceError(pin, self.call_trace())
            if space.get_usage(pin) is not Usage.UNKNOWN:
                self._report(AnomalyKind.MISALIGNED, pin)
                return self._finish(frame, Outcome.INVALID)
            space.set_usage(pin, Usage.INVALID)
        return None

    def _firmware_call(self, frame: _Frame, pin: int, inst: Instruction) -> _Step:
        """NOT1 EXT,0: execution continues in BIOS ROM."""
        space = self.space
        result = self._claim_operands(frame, inst.length)
        if result is not None:
            return result
        after = pin + inst.length

        if self.bios:
            # the BIOS hands control to the game here
            if after <= MAX_ADDRESS:
                space.set_usage(after, Usage.CODE_ENTRY)
            return self._finish(frame, Outcome.VALID)

        if after in self.tables.firmware_calls:
            # the code after the switch is a retry stub; show one instruction of it
            if space.get_usage(after) is Usage.UNKNOWN:
                space.set_usage(after, Usage.CODE)
            resume_at = self.tables.firmware_calls[after]
            if resume_at is None:
                return self._finish(frame, Outcome.VALID)
            log.debug("firmware call at $%04x resumes at $%04x", pin, resume_at)
            frame.resume = _Resume.TAIL
            return resume_at

        self._report(AnomalyKind.UNMAPPED_FIRMWARE_CALL, after)
        return self._finish(frame, Outcome.INVALID)

    def _finish(self, frame: _Frame, outcome: Outcome) -> Outcome:
        self.space.set_usage(frame.entry, Usage.CODE_ENTRY)
        return outcome

    def _report(self, kind: AnomalyKind, address: int) -> Anomaly:
        anomaly = Anomaly(kind, address, self.call_trace())
        self.anomalies.append(anomaly)
        log.warning("%s", anomaly)
        return anomaly
