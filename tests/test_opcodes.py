"""
Opcode table and operand decoding tests.

Expected values come from the LC86104C/108C datasheet instruction
table and hand-assembled byte sequences.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from lc86dis.opcodes import (
    InstructionSet, Instruction, Operands, OperandMode, UnknownModelError,
    LC86K_OPCODES, MODE_LENGTHS, ILLEGAL_MNEMONIC,
    decode, decode_operands, get_a12, get_a16, get_r16, get_r8, get_d9, get_d9bit,
)


def at(pin: int, code: bytes, size: int = 0x10003) -> bytearray:
    """A buffer with code placed at pin."""
    mem = bytearray(size)
    mem[pin:pin + len(code)] = code
    return mem


class TestOpcodeTable:
    """The 16 x 5 group layout expands to the right 256 entries."""

    def test_low_nibble_groups(self):
        """Each row expands to 1 + 1 + 2 + 4 + 8 opcodes."""
        cases = [
            (0x00, "NOP", OperandMode.NONE),
            (0x01, "BR", OperandMode.REL8),
            (0x02, "LD", OperandMode.DIRECT9),
            (0x03, "LD", OperandMode.DIRECT9),
            (0x04, "LD", OperandMode.INDIRECT),
            (0x07, "LD", OperandMode.INDIRECT),
            (0x08, "CALL", OperandMode.ABS12),
            (0x0F, "CALL", OperandMode.ABS12),
            (0x10, "CALLR", OperandMode.REL16),
            (0x11, "BRF", OperandMode.REL16),
            (0x20, "CALLF", OperandMode.ABS16),
            (0x21, "JMPF", OperandMode.ABS16),
            (0x22, "MOV", OperandMode.IMM8_DIRECT9),
            (0x24, "MOV", OperandMode.IMM8_INDIRECT),
            (0x28, "JMP", OperandMode.ABS12),
            (0x31, "BE", OperandMode.IMM8_REL8),
            (0x34, "BE", OperandMode.INDIRECT_IMM8_REL8),
            (0x52, "DBNZ", OperandMode.DIRECT9_REL8),
            (0xA0, "RET", OperandMode.NONE),
            (0xB0, "RETI", OperandMode.NONE),
            (0xB8, "NOT1", OperandMode.DIRECT9_BIT),
            (0xC1, "LDC", OperandMode.NONE),
            (0xFF, "SET1", OperandMode.DIRECT9_BIT),
        ]
        for opcode, mnemonic, mode in cases:
            inst = LC86K_OPCODES.get_instruction(opcode)
            assert inst.mnemonic == mnemonic, f"${opcode:02x}: got {inst.mnemonic}"
            assert inst.mode is mode, f"${opcode:02x}: got {inst.mode}"

    def test_lengths_follow_mode(self):
        """Every opcode's length comes from its operand mode."""
        for opcode in range(0x100):
            inst = LC86K_OPCODES.get_instruction(opcode)
            assert inst.length == MODE_LENGTHS[inst.mode]
            assert 1 <= inst.length <= 3

    def test_no_illegal_opcodes_by_default(self):
        stats = LC86K_OPCODES.get_statistics()
        assert stats['illegal'] == 0
        assert stats['length_1'] + stats['length_2'] + stats['length_3'] == 256

    def test_undocumented_opcodes_can_be_made_illegal(self):
        """$50/$51 become one-byte illegal opcodes on request."""
        iset = InstructionSet(allow_undocumented=False)
        for opcode in (0x50, 0x51):
            inst = iset.get_instruction(opcode)
            assert inst.is_illegal
            assert inst.mnemonic == ILLEGAL_MNEMONIC
            assert inst.length == 1
        assert iset.get_statistics()['illegal'] == 2
        assert iset.get_instruction(0x52).mnemonic == "DBNZ"

    def test_flow_classes(self):
        """BR and BRF are always taken; Bxx and DBNZ are conditional."""
        get = LC86K_OPCODES.get_instruction
        assert get(0x01).is_jump and not get(0x01).is_conditional_branch     # BR
        assert get(0x11).is_jump and not get(0x11).is_conditional_branch     # BRF
        assert get(0x80).is_conditional_branch                               # BZ
        assert get(0x53).is_conditional_branch                               # DBNZ
        assert get(0x78).is_conditional_branch                               # BP
        assert get(0x10).is_call and get(0x20).is_call and get(0x08).is_call
        assert get(0xA0).is_return and get(0xB0).is_return
        assert not get(0x23).is_call and not get(0x23).is_jump               # MOV


class TestOperandReaders:
    """Address arithmetic of the operand readers."""

    def test_rel16_is_low_byte_first(self):
        """CALLR at $2381 with bytes 05 00 goes to $2388, not $0500."""
        mem = at(0x2381, bytes([0x10, 0x05, 0x00]))
        assert get_r16(mem, 0x2381) == 0x2388
        assert get_a16(mem, 0x2381) == 0x0500

    def test_rel16_wraps(self):
        """Relative targets wrap around the 64K space."""
        mem = at(0x0010, bytes([0x10, 0xF0, 0xFF]))
        assert get_r16(mem, 0x0010) == 0x0002

    def test_a12_bits(self):
        # JMP with bit 4 and bits 0-2 set: $3D $67 at $1234
        mem = at(0x1234, bytes([0x3D, 0x67]))
        assert get_a12(mem, 0x1234) == 0x1D67

    def test_a12_page_comes_from_next_instruction(self):
        """JMP at the end of a 4K page lands in the next page."""
        mem = at(0x1FFE, bytes([0x28, 0x10]))
        assert get_a12(mem, 0x1FFE) == 0x2010

    def test_r8_signed(self):
        """r8 is signed and counts from the next instruction."""
        assert get_r8(at(0x100, bytes([0x01, 0x10])), 0x100) == 0x112
        assert get_r8(at(0x100, bytes([0x01, 0xFE])), 0x100) == 0x100
        assert get_r8(at(0x000, bytes([0x01, 0x80])), 0x000) == 0xFF82

    def test_d9_and_d9bit(self):
        assert get_d9(at(0, bytes([0x03, 0x4C])), 0) == 0x14C      # LD P3
        assert get_d9(at(0, bytes([0x02, 0x4C])), 0) == 0x04C
        assert get_d9bit(at(0, bytes([0xB8, 0x0D])), 0) == 0x10D   # NOT1 EXT,0
        assert get_d9bit(at(0, bytes([0xC8, 0x0D])), 0) == 0x00D


class TestDecode:
    """Whole-instruction decoding."""

    def test_imm8_direct9(self):
        inst, ops = decode(at(0, bytes([0x23, 0x06, 0x7F])), 0)
        assert inst.mnemonic == "MOV"
        assert ops.immediate == 0x7F
        assert ops.direct == 0x106

    def test_three_byte_branch_uses_third_byte(self):
        """BN d9,b3,r8 takes its displacement from the third byte."""
        inst, ops = decode(at(0x300, bytes([0x98, 0x4C, 0x05])), 0x300)
        assert inst.mnemonic == "BN"
        assert ops.direct == 0x14C
        assert ops.bit == 0
        assert ops.target == 0x308

    def test_be_immediate(self):
        inst, ops = decode(at(0x200, bytes([0x31, 0x42, 0x03])), 0x200)
        assert (inst.mnemonic, ops.immediate, ops.target) == ("BE", 0x42, 0x206)

    def test_indirect_register(self):
        """DBNZ  with a backwards displacement."""
        inst, ops = decode(at(0, bytes([0x56, 0xFD])), 0)
        assert inst.mnemonic == "DBNZ"
        assert ops.register == 2
        assert ops.target == 0xFFFF

    def test_illegal_decodes_without_operands(self):
        iset = InstructionSet(allow_undocumented=False)
        inst, ops = decode(at(0, bytes([0x50])), 0, iset)
        assert inst.is_illegal
        assert ops == Operands(OperandMode.ILLEGAL)

    def test_unknown_mode_raises(self):
        """A mode outside the table is an internal error."""
        with pytest.raises(UnknownModelError):
            decode_operands(at(0, bytes([0x00])), 0, "bogus")

    def test_instruction_str(self):
        assert str(Instruction(0xA0, "RET", OperandMode.NONE)) == "RET   (1B, -)"
