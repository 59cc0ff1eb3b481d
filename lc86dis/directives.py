"""
Command-line directives

Directives follow the image name on the command line:

    STRICT            kill bad 'veins'; stops before all good code is found
    ASMOUT            output for use with an assembler
    BIOS              interpret the image as a VMU BIOS
    ENTRYn            code starts at address n
    GRAPHBYTESn,b     b bytes of graphics at address n
    FONT8,n,b         b bytes of 8-bit wide font at address n
    GRAPHPAGESn,p     p pages ($C0 bytes each) of graphics at address n

Numbers are C style: decimal, 0x hex, or 0-prefixed octal.

Example:
    vmudis football.vms ENTRY0x139 > football.lst
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .analyzer import AnalysisOptions, Analyzer

__all__ = ['DirectiveError', 'DirectiveKind', 'Directive', 'parse_number',
           'parse_directive', 'parse_directives', 'build_options', 'apply_directives']


class DirectiveError(ValueError):
    """Raised for a directive that can't be parsed."""
    def __init__(self, message: str, word: str = ""):
        self.word = word
        super().__init__(f"{message} in '{word}'" if word else message)


class DirectiveKind(Enum):
    STRICT = 'STRICT'
    ASMOUT = 'ASMOUT'
    BIOS = 'BIOS'
    ENTRY = 'ENTRY'
    GRAPHBYTES = 'GRAPHBYTES'
    FONT8 = 'FONT8,'
    GRAPHPAGES = 'GRAPHPAGES'


MODE_KINDS = (DirectiveKind.STRICT, DirectiveKind.ASMOUT, DirectiveKind.BIOS)

# prefix -> number of numeric arguments
_ARG_COUNTS = {
    DirectiveKind.ENTRY: 1,
    DirectiveKind.GRAPHBYTES: 2,
    DirectiveKind.FONT8: 2,
    DirectiveKind.GRAPHPAGES: 2,
}

_NUMBER = re.compile(r'^\s*([+-]?)(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)\s*$')


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    address: Optional[int] = None
    count: Optional[int] = None

    def __str__(self):
        if self.address is None:
            return self.kind.value
        if self.count is None:
            return f"{self.kind.value}0x{self.address:x}"
        return f"{self.kind.value}0x{self.address:x},{self.count}"


def parse_number(text: str) -> int:
    """Parse a C-style integer literal (decimal, 0x hex, 0 octal)."""
    m = _NUMBER.match(text)
    if not m:
        raise DirectiveError("cannot parse value; must use decimal or 0x notation", text)
    sign, digits = m.groups()
    if digits[:2].lower() == '0x':
        value = int(digits, 16)
    elif len(digits) > 1 and digits[0] == '0':
        value = int(digits, 8)
    else:
        value = int(digits)
    return -value if sign == '-' else value


def _parse_args(text: str, count: int, word: str) -> Tuple[int, ...]:
    parts = text.split(',')
    if len(parts) != count:
        raise DirectiveError(f"expected {count} value(s)", word)
    try:
        return tuple(parse_number(p) for p in parts)
    except DirectiveError as e:
        raise DirectiveError(str(e), word) from e


def parse_directive(word: str) -> Directive:
    """Parse one command-line directive word."""
    for kind in MODE_KINDS:
        if word == kind.value:
            return Directive(kind)

    for kind, nargs in _ARG_COUNTS.items():
        if word.startswith(kind.value):
            args = _parse_args(word[len(kind.value):], nargs, word)
            if nargs == 1:
                if not 0 <= args[0] <= 0xFFFF:
                    raise DirectiveError("entry point outside the 64K address space", word)
                return Directive(kind, args[0])
            return Directive(kind, args[0], args[1])

    raise DirectiveError("unknown command line directive", word)


def parse_directives(words: Iterable[str]) -> Tuple[List[Directive], List[DirectiveError]]:
    """Parse every word; bad ones are returned as errors instead of raised."""
    directives, errors = [], []
    for word in words:
        try:
            directives.append(parse_directive(word))
        except DirectiveError as e:
            errors.append(e)
    return directives, errors


def build_options(directives: Iterable[Directive],
                  options: Optional[AnalysisOptions] = None) -> AnalysisOptions:
    """Fold the mode directives into analysis options."""
    options = options or AnalysisOptions()
    for d in directives:
        if d.kind is DirectiveKind.STRICT:
            options.strict = True
        elif d.kind is DirectiveKind.ASMOUT:
            options.asm_output = True
        elif d.kind is DirectiveKind.BIOS:
            options.bios = True
    return options


def apply_directives(analyzer: Analyzer, directives: Iterable[Directive]) -> None:
    """Apply region and entry directives in order."""
    for d in directives:
        if d.kind is DirectiveKind.ENTRY:
            analyzer.add_entry(d.address)
        elif d.kind is DirectiveKind.GRAPHBYTES:
            analyzer.mark_graphics(d.address, d.count)
        elif d.kind is DirectiveKind.FONT8:
            analyzer.mark_font8(d.address, d.count)
        elif d.kind is DirectiveKind.GRAPHPAGES:
            analyzer.mark_graphics_pages(d.address, d.count)
