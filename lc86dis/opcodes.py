"""
LC86K Instruction Set - opcode table, lengths and operand decoding
Sanyo LC86104C/108C (Dreamcast VMU) 8-bit CPU

The 256 opcodes are laid out as 16 rows selected by the high nibble,
each split into five groups by the low nibble:

    ---0---- ---1---- --2,3--- --4-7--- --8-F---

so one (mnemonic, operand mode) pair covers 1, 1, 2, 4 or 8 opcodes.
The low bits the group absorbs carry operand data (the @Ri register,
bit 8 of a direct address, the bit number of a bit instruction, or
the upper address bits of a 12-bit absolute).

Source: LC86104C/108C datasheet instruction table
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Sequence, Tuple


class UnknownModelError(Exception):
    """Raised when an operand mode outside the closed set reaches a decoder."""
    def __init__(self, mode, opcode: Optional[int] = None):
        self.mode = mode
        self.opcode = opcode
        where = f" (opcode ${opcode:02x})" if opcode is not None else ""
        super().__init__(f"unexpected operand model {mode!r}{where}")


class OperandMode(Enum):
    """Operand addressing modes. Values are the datasheet operand templates."""
    NONE = ""
    INDIRECT = "@Ri"
    ILLEGAL = "!"
    ABS12 = "a12"
    REL8 = "r8"
    DIRECT9 = "d9"
    IMM8 = "#i8"
    IMM8_INDIRECT = "#i8,@Ri"
    DIRECT9_BIT = "d9,b3"
    INDIRECT_REL8 = "@Ri,r8"
    REL16 = "r16"
    ABS16 = "a16"
    IMM8_DIRECT9 = "#i8,d9"
    DIRECT9_BIT_REL8 = "d9,b3,r8"
    IMM8_REL8 = "#i8,r8"
    DIRECT9_REL8 = "d9,r8"
    INDIRECT_IMM8_REL8 = "@Ri,#i8,r8"


# Total instruction length (opcode byte included) per mode
MODE_LENGTHS: Dict[OperandMode, int] = {
    OperandMode.NONE: 1,
    OperandMode.INDIRECT: 1,
    OperandMode.ILLEGAL: 1,
    OperandMode.ABS12: 2,
    OperandMode.REL8: 2,
    OperandMode.DIRECT9: 2,
    OperandMode.IMM8: 2,
    OperandMode.IMM8_INDIRECT: 2,
    OperandMode.DIRECT9_BIT: 2,
    OperandMode.INDIRECT_REL8: 2,
    OperandMode.REL16: 3,
    OperandMode.ABS16: 3,
    OperandMode.IMM8_DIRECT9: 3,
    OperandMode.DIRECT9_BIT_REL8: 3,
    OperandMode.IMM8_REL8: 3,
    OperandMode.DIRECT9_REL8: 3,
    OperandMode.INDIRECT_IMM8_REL8: 3,
}

_N = OperandMode

# One row per high nibble; columns are the low-nibble groups 0, 1, 2-3, 4-7, 8-F
OPCODE_ROWS: Tuple[Tuple[Tuple[str, OperandMode], ...], ...] = (
    (("NOP", _N.NONE), ("BR", _N.REL8), ("LD", _N.DIRECT9), ("LD", _N.INDIRECT), ("CALL", _N.ABS12)),
    (("CALLR", _N.REL16), ("BRF", _N.REL16), ("ST", _N.DIRECT9), ("ST", _N.INDIRECT), ("CALL", _N.ABS12)),
    (("CALLF", _N.ABS16), ("JMPF", _N.ABS16), ("MOV", _N.IMM8_DIRECT9), ("MOV", _N.IMM8_INDIRECT), ("JMP", _N.ABS12)),
    (("MUL", _N.NONE), ("BE", _N.IMM8_REL8), ("BE", _N.DIRECT9_REL8), ("BE", _N.INDIRECT_IMM8_REL8), ("JMP", _N.ABS12)),
    (("DIV", _N.NONE), ("BNE", _N.IMM8_REL8), ("BNE", _N.DIRECT9_REL8), ("BNE", _N.INDIRECT_IMM8_REL8), ("BPC", _N.DIRECT9_BIT_REL8)),
    (("LDF", _N.NONE), ("STF", _N.NONE), ("DBNZ", _N.DIRECT9_REL8), ("DBNZ", _N.INDIRECT_REL8), ("BPC", _N.DIRECT9_BIT_REL8)),
    (("PUSH", _N.DIRECT9), ("PUSH", _N.DIRECT9), ("INC", _N.DIRECT9), ("INC", _N.INDIRECT), ("BP", _N.DIRECT9_BIT_REL8)),
    (("POP", _N.DIRECT9), ("POP", _N.DIRECT9), ("DEC", _N.DIRECT9), ("DEC", _N.INDIRECT), ("BP", _N.DIRECT9_BIT_REL8)),
    (("BZ", _N.REL8), ("ADD", _N.IMM8), ("ADD", _N.DIRECT9), ("ADD", _N.INDIRECT), ("BN", _N.DIRECT9_BIT_REL8)),
    (("BNZ", _N.REL8), ("ADDC", _N.IMM8), ("ADDC", _N.DIRECT9), ("ADDC", _N.INDIRECT), ("BN", _N.DIRECT9_BIT_REL8)),
    (("RET", _N.NONE), ("SUB", _N.IMM8), ("SUB", _N.DIRECT9), ("SUB", _N.INDIRECT), ("NOT1", _N.DIRECT9_BIT)),
    (("RETI", _N.NONE), ("SUBC", _N.IMM8), ("SUBC", _N.DIRECT9), ("SUBC", _N.INDIRECT), ("NOT1", _N.DIRECT9_BIT)),
    (("ROR", _N.NONE), ("LDC", _N.NONE), ("XCH", _N.DIRECT9), ("XCH", _N.INDIRECT), ("CLR1", _N.DIRECT9_BIT)),
    (("RORC", _N.NONE), ("OR", _N.IMM8), ("OR", _N.DIRECT9), ("OR", _N.INDIRECT), ("CLR1", _N.DIRECT9_BIT)),
    (("ROL", _N.NONE), ("AND", _N.IMM8), ("AND", _N.DIRECT9), ("AND", _N.INDIRECT), ("SET1", _N.DIRECT9_BIT)),
    (("ROLC", _N.NONE), ("XOR", _N.IMM8), ("XOR", _N.DIRECT9), ("XOR", _N.INDIRECT), ("SET1", _N.DIRECT9_BIT)),
)

# low nibble -> column in OPCODE_ROWS
LOW_NIBBLE_GROUP = (0, 1, 2, 2, 3, 3, 3, 3, 4, 4, 4, 4, 4, 4, 4, 4)

# LDF/STF are missing from early LC86104C datasheets
UNDOCUMENTED_OPCODES = (0x50, 0x51)
ILLEGAL_MNEMONIC = "???"

# Mnemonic classes used by the code tracer
CALL_MNEMONICS = frozenset({"CALL", "CALLF", "CALLR"})
JUMP_MNEMONICS = frozenset({"JMP", "JMPF", "BR", "BRF"})
RETURN_MNEMONICS = frozenset({"RET", "RETI"})
# Instructions after which the listing inserts a separator line
FLOW_BREAK_MNEMONICS = JUMP_MNEMONICS | RETURN_MNEMONICS


@dataclass(frozen=True)
class Instruction:
    """LC86K instruction metadata"""
    opcode: int
    mnemonic: str
    mode: OperandMode

    @property
    def length(self) -> int:
        return MODE_LENGTHS[self.mode]

    @property
    def is_illegal(self) -> bool:
        return self.mode is OperandMode.ILLEGAL

    @property
    def is_call(self) -> bool:
        return self.mnemonic in CALL_MNEMONICS

    @property
    def is_jump(self) -> bool:
        return self.mnemonic in JUMP_MNEMONICS

    @property
    def is_return(self) -> bool:
        return self.mnemonic in RETURN_MNEMONICS

    @property
    def is_conditional_branch(self) -> bool:
        # BR/BRF start with 'B' too but are always taken
        if self.is_jump:
            return False
        return self.mnemonic.startswith("B") or self.mnemonic == "DBNZ"

    def __str__(self):
        return f"{self.mnemonic:5s} ({self.length}B, {self.mode.value or '-'})"


@dataclass(frozen=True)
class Operands:
    """Operands decoded for one instruction; fields not used by the mode stay None."""
    mode: OperandMode
    direct: Optional[int] = None      # 9-bit data address
    bit: Optional[int] = None         # bit number 0-7
    immediate: Optional[int] = None   # 8-bit constant
    register: Optional[int] = None    # @R0..@R3
    target: Optional[int] = None      # code address


class InstructionSet:
    """The 256-entry LC86K opcode table"""

    def __init__(self, allow_undocumented: bool = True):
        self.allow_undocumented = allow_undocumented
        self._opcodes = self._build_opcode_table()

    def _build_opcode_table(self) -> Dict[int, Instruction]:
        table = {}
        for opcode in range(0x100):
            mnemonic, mode = OPCODE_ROWS[opcode >> 4][LOW_NIBBLE_GROUP[opcode & 0x0F]]
            if not self.allow_undocumented and opcode in UNDOCUMENTED_OPCODES:
                mnemonic, mode = ILLEGAL_MNEMONIC, OperandMode.ILLEGAL
            table[opcode] = Instruction(opcode, mnemonic, mode)
        return table

    def get_instruction(self, opcode: int) -> Instruction:
        return self._opcodes[opcode & 0xFF]

    def instruction_length(self, opcode: int) -> int:
        return self.get_instruction(opcode).length

    def get_statistics(self) -> Dict[str, int]:
        """Count opcodes per total instruction length"""
        stats = {'illegal': 0, 'length_1': 0, 'length_2': 0, 'length_3': 0}
        for inst in self._opcodes.values():
            if inst.is_illegal:
                stats['illegal'] += 1
            stats[f'length_{inst.length}'] += 1
        return stats


# Shared default instance
LC86K_OPCODES = InstructionSet()


# ──────────────────────────────────────────────
# Operand readers
# ──────────────────────────────────────────────
# All take the buffer holding the image and the address of the
# instruction's first byte.

def get_a12(mem: Sequence[int], pin: int) -> int:
    """12-bit absolute; the top nibble comes from the next instruction's page."""
    return (((pin + 2) & 0xF000)
            | ((mem[pin] & 0x07) << 8)
            | (0x800 if mem[pin] & 0x10 else 0)
            | mem[pin + 1])


def get_r16(mem: Sequence[int], pin: int) -> int:
    """16-bit relative. Displacement is low byte first, unlike a16."""
    return (pin + 2 + ((mem[pin + 2] << 8) | mem[pin + 1])) & 0xFFFF


def get_a16(mem: Sequence[int], pin: int) -> int:
    """16-bit absolute, big-endian."""
    return (mem[pin + 1] << 8) | mem[pin + 2]


def get_r8(mem: Sequence[int], pin: int) -> int:
    """8-bit signed displacement at pin+1, relative to pin+2."""
    disp = mem[pin + 1]
    if disp & 0x80:
        disp -= 0x100
    return (pin + 2 + disp) & 0xFFFF


def get_d9(mem: Sequence[int], pin: int) -> int:
    return ((mem[pin] & 0x01) << 8) | mem[pin + 1]


def get_d9bit(mem: Sequence[int], pin: int) -> int:
    return ((mem[pin] & 0x10) << 4) | mem[pin + 1]


def get_bit(mem: Sequence[int], pin: int) -> int:
    return mem[pin] & 0x07


def get_reg(mem: Sequence[int], pin: int) -> int:
    return mem[pin] & 0x03


# ──────────────────────────────────────────────
# Per-mode decoders
# ──────────────────────────────────────────────
# Three-byte branches keep the displacement in byte 2, hence get_r8(pin + 1).

_DECODERS: Dict[OperandMode, Callable[[Sequence[int], int], dict]] = {
    _N.NONE: lambda m, p: {},
    _N.ILLEGAL: lambda m, p: {},
    _N.INDIRECT: lambda m, p: {'register': get_reg(m, p)},
    _N.ABS12: lambda m, p: {'target': get_a12(m, p)},
    _N.REL8: lambda m, p: {'target': get_r8(m, p)},
    _N.DIRECT9: lambda m, p: {'direct': get_d9(m, p)},
    _N.IMM8: lambda m, p: {'immediate': m[p + 1]},
    _N.IMM8_INDIRECT: lambda m, p: {'immediate': m[p + 1], 'register': get_reg(m, p)},
    _N.DIRECT9_BIT: lambda m, p: {'direct': get_d9bit(m, p), 'bit': get_bit(m, p)},
    _N.INDIRECT_REL8: lambda m, p: {'register': get_reg(m, p), 'target': get_r8(m, p)},
    _N.REL16: lambda m, p: {'target': get_r16(m, p)},
    _N.ABS16: lambda m, p: {'target': get_a16(m, p)},
    _N.IMM8_DIRECT9: lambda m, p: {'immediate': m[p + 2], 'direct': get_d9(m, p)},
    _N.DIRECT9_BIT_REL8: lambda m, p: {'direct': get_d9bit(m, p), 'bit': get_bit(m, p),
                                       'target': get_r8(m, p + 1)},
    _N.IMM8_REL8: lambda m, p: {'immediate': m[p + 1], 'target': get_r8(m, p + 1)},
    _N.DIRECT9_REL8: lambda m, p: {'direct': get_d9(m, p), 'target': get_r8(m, p + 1)},
    _N.INDIRECT_IMM8_REL8: lambda m, p: {'register': get_reg(m, p), 'immediate': m[p + 1],
                                         'target': get_r8(m, p + 1)},
}


def decode_operands(mem: Sequence[int], pin: int, mode: OperandMode) -> Operands:
    """Decode the operands of the instruction at pin for the given mode."""
    decoder = _DECODERS.get(mode)
    if decoder is None:
        raise UnknownModelError(mode, mem[pin])
    return Operands(mode, **decoder(mem, pin))


def decode(mem: Sequence[int], pin: int,
           iset: InstructionSet = LC86K_OPCODES) -> Tuple[Instruction, Operands]:
    """Look up the opcode at pin and decode its operands."""
    inst = iset.get_instruction(mem[pin])
    return inst, decode_operands(mem, pin, inst.mode)
