"""
Listing renderer - one linear pass over a classified AddressSpace

Each address is rendered according to its usage and the renderer
advances by however many bytes that line consumed:

    CODE / CODE_ENTRY   one instruction          instruction length
    INVALID             warning + instruction    instruction length
    UNKNOWN / DATA      byte dump + ascii        up to the next 8-byte boundary
                        VMS file comments        16 or 32
                        icon bitmap row          16
    GRAPHICS            bitmap row               6
    FONT8               glyph row                1
    TEXT                quoted string            through the terminator

Model lines:

    0593- 23 00 00 |              MOV    #$00,ACC
    0200-          |              BYTE   "TRICKSTYLE JR.  "  ;File comment on VM (16 bytes)

In assembler mode the address/bytes column is dropped and data
operands are printed as numbers so the output reassembles.
"""

from typing import Iterator, List, Optional, Tuple

from .memory import AddressSpace, Bank, Usage
from .opcodes import (
    InstructionSet, Instruction, Operands, OperandMode,
    FLOW_BREAK_MNEMONICS, LC86K_OPCODES, UnknownModelError, decode,
)
from .tables import SymbolTables, DEFAULT_TABLES

BANNER = (
    "; LC86104C/108C disassembler.",
    ";  lc86dis - listing of a VMU program image",
)

LABEL_WIDTH = 13
DATA_INDENT = " " * LABEL_WIDTH
SEPARATOR = "               |"
MISALIGNED_WARNING = "*** WARNING: this is the target of a possibly misaligned jump:"

# VMS header layout
FILE_COMMENT_VM = 0x200        # 16 bytes shown on the VMU
FILE_COMMENT_DC = 0x210        # 32 bytes shown on the Dreamcast
ICON_COUNT_ADDR = 0x240
ICON_DATA_START = 0x280
ICON_SIZE = 0x200
ICON_ROW = 16

GRAPHICS_ROW = 6
DATA_ROW = 8


def _printable(b: int) -> bool:
    return 0x20 <= b <= 0x7E


def _bits(b: int) -> str:
    return "".join("#" if b & (0x80 >> i) else "." for i in range(8))


class Renderer:
    """Turns a classified AddressSpace into listing lines"""

    def __init__(self, space: AddressSpace,
                 tables: SymbolTables = DEFAULT_TABLES,
                 iset: InstructionSet = LC86K_OPCODES,
                 asm_output: bool = False,
                 bios: bool = False):
        self.space = space
        self.tables = tables
        self.iset = iset
        self.asm_output = asm_output
        self.bios = bios

    # ══════════════════════════════════════════════
    # Whole listing
    # ══════════════════════════════════════════════

    def header(self, source_name: Optional[str] = None) -> List[str]:
        lines = list(BANNER)
        if source_name:
            lines.append(f"; Source file={source_name}, {self.space.size} "
                         f"(0x{self.space.size:04x}) bytes.")
        lines += [";", "", "", ";" + "-" * 66, ""]
        if self.asm_output:
            lines += ['             .include "sfr.i"', "", "             .org 0", "", ""]
        return lines

    def render(self, source_name: Optional[str] = None) -> Iterator[str]:
        """Yield every listing line, header first."""
        yield from self.header(source_name)
        pin = 0
        while pin < self.space.size:
            lines, next_pin = self.render_unit(pin)
            yield from lines
            if next_pin is None:
                break
            pin = next_pin

    def render_text(self, source_name: Optional[str] = None) -> str:
        return "\n".join(self.render(source_name)) + "\n"

    def render_unit(self, pin: int) -> Tuple[List[str], Optional[int]]:
        """Render the unit starting at pin.

        Returns the lines and the address of the next unit (None when
        nothing more can be rendered).
        """
        usage = self.space.get_usage(pin)
        if usage is Usage.UNUSED:
            return [], None
        if usage in (Usage.UNKNOWN, Usage.DATA):
            return self.render_data(pin)
        if usage is Usage.GRAPHICS:
            return self.render_graphics(pin)
        if usage is Usage.FONT8:
            return self.render_font(pin)
        if usage is Usage.TEXT:
            return self.render_string(pin)
        if usage is Usage.INVALID:
            lines, next_pin = self.render_code(pin)
            return [MISALIGNED_WARNING] + lines, next_pin
        return self.render_code(pin)

    # ══════════════════════════════════════════════
    # Labels
    # ══════════════════════════════════════════════

    def code_label(self, addr: int) -> str:
        return self.tables.code_labels.get(addr, f"L{addr:04X}")

    def label_field(self, addr: int) -> str:
        """Label column for a line that defines addr"""
        return f"{self.code_label(addr) + ':':<{LABEL_WIDTH}}"

    def named_label_field(self, addr: int) -> str:
        """Label column that only shows table names (graphics and fonts)"""
        name = self.tables.code_labels.get(addr)
        if name is None:
            return DATA_INDENT
        return f"{name + ':':<{LABEL_WIDTH}}"

    def data_label(self, addr: int, bank: Bank) -> str:
        """Name a direct address.

        $000-$0FF is RAM seen through the selected bank: a table name,
        MEMxxx when the bank is known, or MEMUxx with both guesses.
        $100-$1FF are SFRs.
        """
        if addr >= 0x100:
            name = self.tables.sfr_names.get(addr)
            if name is not None:
                return name
            return f"${addr:03x}" if self.asm_output else f"SFR{addr:03X}"

        if self.asm_output:
            return f"${addr:03x}"

        if bank is Bank.BANK0:
            banked = addr
        elif bank is Bank.BANK1:
            banked = addr + 0x100
        else:
            return (f"MEMU{addr:02X}[unknown bank; "
                    f"BANK0={self.data_label(addr, Bank.BANK0)}, "
                    f"BANK1={self.data_label(addr, Bank.BANK1)}]")
        return self.tables.ram_names.get(banked, f"MEM{banked:03X}")

    # ══════════════════════════════════════════════
    # Code
    # ══════════════════════════════════════════════

    def format_operands(self, inst: Instruction, ops: Operands, bank: Bank) -> str:
        mode = inst.mode
        N = OperandMode
        if mode is N.NONE:
            return ""
        if mode in (N.ABS12, N.REL16, N.ABS16, N.REL8):
            return self.code_label(ops.target)
        if mode is N.DIRECT9:
            return self.data_label(ops.direct, bank)
        if mode is N.INDIRECT:
            return f"@R{ops.register}"
        if mode is N.IMM8:
            return f"#${ops.immediate:02x}"
        if mode is N.IMM8_DIRECT9:
            return f"#${ops.immediate:02x},{self.data_label(ops.direct, bank)}"
        if mode is N.IMM8_INDIRECT:
            return f"#${ops.immediate:02x}, @R{ops.register}"
        if mode is N.DIRECT9_BIT:
            return f"{self.data_label(ops.direct, bank)}, {ops.bit}"
        if mode is N.DIRECT9_BIT_REL8:
            return f"{self.data_label(ops.direct, bank)}, {ops.bit}, {self.code_label(ops.target)}"
        if mode is N.IMM8_REL8:
            return f"#${ops.immediate:02x},{self.code_label(ops.target)}"
        if mode is N.DIRECT9_REL8:
            return f"{self.data_label(ops.direct, bank)},{self.code_label(ops.target)}"
        if mode is N.INDIRECT_IMM8_REL8:
            return f"@R{ops.register},#${ops.immediate:02x},{self.code_label(ops.target)}"
        if mode is N.INDIRECT_REL8:
            return f"@R{ops.register},{self.code_label(ops.target)}"
        if mode is N.ILLEGAL:
            return f"${inst.opcode:02x}                ;illegal opcode"
        raise UnknownModelError(mode, inst.opcode)

    def render_code(self, pin: int) -> Tuple[List[str], int]:
        space = self.space
        inst, ops = decode(space.mem, pin, self.iset)

        line = ""
        if not self.asm_output:
            raw = " ".join(f"{space.byte(pin + i):02x}" if i < inst.length else "  "
                           for i in range(3))
            line = f"{pin:04x}- {raw} | "

        if space.get_usage(pin) is Usage.CODE_ENTRY:
            line += self.label_field(pin)
        else:
            line += DATA_INDENT

        line += f"{inst.mnemonic:<5s}  "
        line += self.format_operands(inst, ops, space.get_bank(pin))

        for text in self.tables.comments_for(space.window(pin, 3)):
            line += f"      ;{text}"

        lines = [line]
        if inst.mnemonic in FLOW_BREAK_MNEMONICS:
            lines.append("" if self.asm_output else SEPARATOR)
        return lines, pin + inst.length

    # ══════════════════════════════════════════════
    # Data
    # ══════════════════════════════════════════════

    def _prefix(self, pin: int) -> str:
        return "" if self.asm_output else f"{pin:04x}-          | "

    def _in_icon_area(self, pin: int) -> bool:
        if self.bios:
            return False
        icons = self.space.byte(ICON_COUNT_ADDR)
        return ICON_DATA_START <= pin < ICON_DATA_START + icons * ICON_SIZE

    def render_data(self, pin: int) -> Tuple[List[str], int]:
        if self._in_icon_area(pin):
            return self.render_icon_row(pin)
        if pin in (FILE_COMMENT_VM, FILE_COMMENT_DC):
            rendered = self.render_file_comment(pin)
            if rendered is not None:
                return rendered
        return self.render_bytes(pin)

    def render_icon_row(self, pin: int) -> Tuple[List[str], int]:
        """16 bytes of a 32x32 4-bit icon, one hex digit per pixel"""
        lines = []
        offset = pin - ICON_DATA_START
        if offset % ICON_SIZE == 0:
            number = offset // ICON_SIZE
            if self.asm_output:
                lines.append(f"  ;icon #{number}")
            else:
                lines.append(f"{pin:04x}-          |   ;icon #{number}")

        row = self.space.window(pin, ICON_ROW)
        pixels = "".join(
            (f"{b >> 4:x}" if b & 0xF0 else " ") + (f"{b & 0xF:x}" if b & 0x0F else " ")
            for b in row)
        dump = ",".join(f"${b:02x}" for b in row)
        lines.append(f"{self._prefix(pin)}{DATA_INDENT}BYTE   {dump}      ;icon \"{pixels}\"")
        return lines, pin + ICON_ROW

    def render_file_comment(self, pin: int) -> Optional[Tuple[List[str], int]]:
        """VMS header text fields; None if they don't hold plain text"""
        size = 16 if pin == FILE_COMMENT_VM else 32
        text = self.space.window(pin, size)
        if not all(_printable(b) for b in text):
            return None
        if pin == FILE_COMMENT_VM:
            note = '"                 ;File comment on VM (16 bytes)'
        else:
            note = '" ;File comment on Dreamcast (32 bytes)'
        line = f'{self._prefix(pin)}{DATA_INDENT}BYTE   "{text.decode("ascii")}{note}'
        return [line], pin + size

    def render_bytes(self, pin: int) -> Tuple[List[str], int]:
        """Plain data: up to the next 8-byte boundary, while bytes stay unattributed"""
        space = self.space
        end = pin + 1
        while end % DATA_ROW and end < space.size and \
                space.get_usage(end) in (Usage.UNKNOWN, Usage.DATA):
            end += 1
        row = space.window(pin, end - pin)

        line = f"{self._prefix(pin)}{DATA_INDENT}BYTE   " + ",".join(f"${b:02x}" for b in row)
        if any(_printable(b & 0x7F) for b in row):
            ascii_ = "".join(chr(b & 0x7F) if _printable(b & 0x7F) else "." for b in row)
            line += "    " * (DATA_ROW - len(row)) + f'  ;ascii "{ascii_}"'
        return [line], end

    def render_graphics(self, pin: int) -> Tuple[List[str], int]:
        row = self.space.window(pin, GRAPHICS_ROW)
        dump = ",".join(f"${b:02x}" for b in row)
        bitmap = "".join(_bits(b) for b in row)
        line = (f"{self._prefix(pin)}{self.named_label_field(pin)}BYTE   {dump}"
                f"          ;graphics \"{bitmap}\"")
        return [line], pin + GRAPHICS_ROW

    def render_font(self, pin: int) -> Tuple[List[str], int]:
        b = self.space.byte(pin)
        line = (f"{self._prefix(pin)}{self.named_label_field(pin)}BYTE   ${b:02x}"
                f"               ;font \"{_bits(b)}\"")
        return [line], pin + 1

    def render_string(self, pin: int) -> Tuple[List[str], int]:
        """A TEXT run as one BYTE directive.

        Printable characters are quoted; the assembler has no escapes for
        backslash or double quote, so those go out as hex like control bytes.
        """
        space = self.space
        start = pin
        items: List[str] = []
        quoted = ""
        while pin < space.size and space.get_usage(pin) is Usage.TEXT:
            b = space.byte(pin)
            pin += 1
            if _printable(b) and b not in (0x22, 0x5C):
                quoted += chr(b)
            else:
                if quoted:
                    items.append(f'"{quoted}"')
                    quoted = ""
                items.append(f"${b:02x}")
            if b == 0:
                break
        if quoted:
            items.append(f'"{quoted}"')
        line = f"{self._prefix(start)}{DATA_INDENT}BYTE   " + ",".join(items)
        return [line], pin
