"""
Data classifiers - regions the tracer can't find on its own

Fixed-format regions (graphics bitmaps, 8-bit wide fonts) are declared
by the user and marked before tracing, so a stray branch into them is
reported instead of decoded.

Text search runs after tracing over whatever is still unattributed.
A text string:
  - is null terminated
  - is 5-128 bytes long, terminator included
  - has no byte with bit 7 set
  - is printable ASCII, CR or LF
  - contains at least one letter

The first $240 bytes hold the VMS header (file comments, icon count)
and are never searched; the renderer prints those fields itself.
"""

import logging

from .memory import AddressSpace, Usage

log = logging.getLogger(__name__)

TEXT_SEARCH_START = 0x240
TEXT_MAX_LENGTH = 128
TEXT_MIN_LENGTH = 5
GRAPHICS_PAGE_SIZE = 0xC0   # one 48x32 LCD screen, packed

_TEXT_CANDIDATES = (Usage.UNKNOWN, Usage.DATA)
_PRINTABLE = range(0x20, 0x7F)
_LINE_BREAKS = (0x0D, 0x0A)


def _is_text_byte(b: int) -> bool:
    return b in _PRINTABLE or b in _LINE_BREAKS


def _is_alpha(b: int) -> bool:
    return 0x41 <= b <= 0x5A or 0x61 <= b <= 0x7A


def mark_graphics(space: AddressSpace, address: int, count: int) -> int:
    """Mark count bytes of bitmap graphics at address."""
    log.info("Mapping graphics... user-defined point $%04x-$%04x ($%04x bytes)",
             address, address + count - 1, count)
    return space.mark(address, count, Usage.GRAPHICS)


def mark_graphics_pages(space: AddressSpace, address: int, pages: int) -> int:
    """Mark whole LCD screens of graphics at address."""
    count = pages * GRAPHICS_PAGE_SIZE
    log.info("Mapping graphics... user-defined point $%04x-$%04x ($%04x pages)",
             address, address + count - 1, pages)
    return space.mark(address, count, Usage.GRAPHICS)


def mark_font8(space: AddressSpace, address: int, count: int) -> int:
    """Mark count bytes of 8-pixel wide font glyphs at address."""
    log.info("Mapping 8-bit-wide font... user-defined point $%04x-$%04x ($%04x bytes)",
             address, address + count - 1, count)
    return space.mark(address, count, Usage.FONT8)


def _scan_candidate(space: AddressSpace, pin: int):
    """Examine bytes from pin as a possible string.

    Returns (examined, accepted): how many bytes were looked at, and
    whether those bytes form a string.
    """
    letters = 0
    for i in range(TEXT_MAX_LENGTH):
        addr = pin + i
        if addr >= len(space.usage) or space.get_usage(addr) not in _TEXT_CANDIDATES:
            return i + 1, False
        b = space.byte(addr)
        if b == 0:
            length = i + 1
            return length, length >= TEXT_MIN_LENGTH and letters > 0
        if not _is_text_byte(b):
            return i + 1, False
        if _is_alpha(b):
            letters += 1
    # ran the full length without a terminator
    return TEXT_MAX_LENGTH, False


def search_text(space: AddressSpace, start: int = TEXT_SEARCH_START) -> int:
    """Mark null-terminated strings in unattributed bytes as TEXT.

    Returns the number of strings found.
    """
    log.info("Searching for text strings...")
    found = 0
    pin = start
    while pin < space.size:
        examined, accepted = _scan_candidate(space, pin)
        if accepted:
            space.mark(pin, examined, Usage.TEXT)
            log.debug("text string at $%04x (%d bytes)", pin, examined)
            found += 1
        pin += examined
    log.info("%d strings found", found)
    return found
