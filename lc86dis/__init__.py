"""
lc86dis - LC86104C/108C disassembler for Sega Dreamcast VMU images
==================================================================
Turns a raw VMU program image (.vms game or BIOS dump) into a readable
assembly listing by tracing control flow from the reset and interrupt
vectors and classifying every byte it can reach.

Architecture:
    ┌──────────┐    ┌──────────────┐    ┌────────────┐    ┌────────────┐    ┌──────────┐
    │ Image    │───>│ AddressSpace │───>│ CodeTracer │───>│ Heuristics │───>│ Renderer │
    │ (.vms)   │    │ (usage/bank) │    │ (code)     │    │ (text)     │    │ (listing)│
    └──────────┘    └──────────────┘    └────────────┘    └────────────┘    └──────────┘

    - opcodes.py:    256-entry opcode table, operand readers and decoding
    - memory.py:     64K image plus per-address usage and RAM bank tags
    - tables.py:     SFR/RAM names, labels, auto-comments, firmware call map
    - tracer.py:     control-flow discovery with bank tracking
    - heuristics.py: graphics/font regions and the text string search
    - analyzer.py:   runs the passes in order for one image
    - renderer.py:   single linear pass producing listing lines
    - directives.py: STRICT/ASMOUT/BIOS/ENTRY/... command-line directives
    - log.py:        rich console + optional file logging
    - cli.py:        the vmudis command
"""

__version__ = "1.0.0"

from typing import Iterable, Optional, Union

from .opcodes import (
    Instruction, InstructionSet, OperandMode, Operands, UnknownModelError,
    LC86K_OPCODES, decode,
)
from .memory import AddressSpace, Bank, Usage
from .tables import SymbolTables, DEFAULT_TABLES
from .tracer import Anomaly, AnomalyKind, CodeTracer, Outcome, TraceError
from .analyzer import AnalysisOptions, AnalysisSummary, Analyzer
from .renderer import Renderer
from .directives import Directive, DirectiveError, DirectiveKind, parse_directive


def disassemble_image(data: Union[bytes, bytearray], *, strict: bool = False,
                      bios: bool = False, asm_output: bool = False,
                      entries: Iterable[int] = (),
                      source_name: Optional[str] = None) -> str:
    """Disassemble an image and return the listing text.

    Args:
        data: Raw image bytes, loaded at address 0.
        strict: Kill whole call chains that lead into bad code.
        bios: Treat the image as a VMU BIOS.
        asm_output: Produce reassemblable output without address columns.
        entries: Extra code entry points, traced before the vectors.
        source_name: File name shown in the listing header.
    """
    space = AddressSpace(data)
    analyzer = Analyzer(space, AnalysisOptions(strict=strict, bios=bios,
                                               asm_output=asm_output))
    for address in entries:
        analyzer.add_entry(address)
    analyzer.run()
    renderer = Renderer(space, analyzer.tables, analyzer.iset,
                        asm_output=asm_output, bios=bios)
    return renderer.render_text(source_name)
