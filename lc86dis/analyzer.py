"""
Analysis session - runs the tracer and classifiers in the right order

    ┌───────────┐   ┌────────────────┐   ┌──────────────┐   ┌─────────────┐
    │ user      │──>│ user ENTRY     │──>│ reset + IRQ  │──>│ text search │
    │ regions   │   │ points         │   │ vectors      │   │             │
    └───────────┘   └────────────────┘   └──────────────┘   └─────────────┘

Regions and user entry points are applied in the order they are given,
the fixed vectors are traced afterwards, then the text search runs over
what is left.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .memory import AddressSpace, Bank, Usage
from .opcodes import InstructionSet
from .tables import SymbolTables, DEFAULT_TABLES
from .tracer import Anomaly, CodeTracer, Outcome
from . import heuristics

log = logging.getLogger(__name__)

# =============================================================================
#  ENTRY POINTS
# =============================================================================
RESET_VECTOR = (0x0000, Bank.BANK1)   # the BIOS sets PSW itself before starting

# Interrupt handlers run with whatever bank was selected when they fired
INTERRUPT_VECTORS: Tuple[Tuple[int, Bank], ...] = (
    (0x0003, Bank.UNKNOWN),   # INT0
    (0x000B, Bank.UNKNOWN),   # INT1
    (0x0013, Bank.UNKNOWN),   # INT2 / T0L overflow
    (0x001B, Bank.UNKNOWN),   # INT3 / base timer
    (0x0023, Bank.UNKNOWN),   # T0H overflow
    (0x002B, Bank.UNKNOWN),   # T1
    (0x0033, Bank.UNKNOWN),   # SIO0
    (0x003B, Bank.UNKNOWN),   # SIO1
    (0x0043, Bank.BANK0),     # RFB, only handled by the BIOS
    (0x004B, Bank.UNKNOWN),   # P3
)

# Game-callable BIOS services, traced only when the image is a BIOS
BIOS_VECTORS: Tuple[int, ...] = (0x100, 0x108, 0x110, 0x120, 0x130, 0x140, 0x1F0)

USER_ENTRY_BANK = Bank.BANK1


@dataclass
class AnalysisOptions:
    """Mode switches for one analysis run"""
    strict: bool = False            # kill bad veins
    bios: bool = False              # image is a VMU BIOS, not a game
    asm_output: bool = False        # listing must reassemble
    allow_undocumented: bool = True # decode $50/$51 as LDF/STF


@dataclass
class AnalysisSummary:
    strings_found: int = 0
    anomalies: List[Anomaly] = field(default_factory=list)
    usage: Dict[Usage, int] = field(default_factory=dict)

    @property
    def anomaly_count(self) -> int:
        return len(self.anomalies)


class Analyzer:
    """Owns the address space, tracer and classifiers for one image"""

    def __init__(self, space: AddressSpace,
                 options: Optional[AnalysisOptions] = None,
                 tables: SymbolTables = DEFAULT_TABLES):
        self.space = space
        self.options = options or AnalysisOptions()
        self.tables = tables
        self.iset = InstructionSet(allow_undocumented=self.options.allow_undocumented)
        self.tracer = CodeTracer(space, tables, self.iset,
                                 strict=self.options.strict,
                                 bios=self.options.bios)
        self.summary: Optional[AnalysisSummary] = None

    # ── user-supplied knowledge ──

    def add_entry(self, address: int, bank: Bank = USER_ENTRY_BANK) -> Outcome:
        log.info("Mapping memory...   user-defined point $%04x", address)
        return self.tracer.trace(address, bank)

    def mark_graphics(self, address: int, count: int) -> int:
        return heuristics.mark_graphics(self.space, address, count)

    def mark_graphics_pages(self, address: int, pages: int) -> int:
        return heuristics.mark_graphics_pages(self.space, address, pages)

    def mark_font8(self, address: int, count: int) -> int:
        return heuristics.mark_font8(self.space, address, count)

    # ── full run ──

    def trace_vectors(self) -> None:
        log.info("Mapping memory...   reset/start entry point")
        self.tracer.trace(*RESET_VECTOR)

        log.info("Mapping memory...   interrupt entry points")
        for address, bank in INTERRUPT_VECTORS:
            outcome = self.tracer.trace(address, bank)
            log.debug("vector $%04x: %s", address, outcome.value)

        if self.options.bios:
            log.info("Mapping memory...   BIOS entry points")
            for address in BIOS_VECTORS:
                self.tracer.trace(address, Bank.BANK1)

    def run(self) -> AnalysisSummary:
        """Trace the fixed vectors, then search for text."""
        self.trace_vectors()
        strings = heuristics.search_text(self.space)
        log.info("Done mapping memory.")
        self.summary = AnalysisSummary(
            strings_found=strings,
            anomalies=list(self.tracer.anomalies),
            usage=self.space.histogram(),
        )
        return self.summary
