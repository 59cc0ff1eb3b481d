"""Address space and RAM bank lattice tests."""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lc86dis.memory import AddressSpace, Bank, Usage, ADDRESS_SPACE_SIZE


class TestBankJoin:

    def test_unknown_is_identity(self):
        """UNKNOWN joined with anything gives the other bank."""
        for bank in Bank:
            assert Bank.UNKNOWN.join(bank) is bank
            assert bank.join(Bank.UNKNOWN) is bank

    def test_same_bank(self):
        assert Bank.BANK0.join(Bank.BANK0) is Bank.BANK0
        assert Bank.BANK1.join(Bank.BANK1) is Bank.BANK1

    def test_conflict_is_various(self):
        """BANK0 and BANK1 together give VARIOUS, and VARIOUS sticks."""
        assert Bank.BANK0.join(Bank.BANK1) is Bank.VARIOUS
        assert Bank.BANK1.join(Bank.BANK0) is Bank.VARIOUS
        assert Bank.VARIOUS.join(Bank.BANK0) is Bank.VARIOUS
        assert Bank.BANK1.join(Bank.VARIOUS) is Bank.VARIOUS

    def test_join_bank_on_space(self):
        space = AddressSpace(bytes(16))
        assert space.join_bank(4, Bank.BANK0) is Bank.BANK0
        assert space.join_bank(4, Bank.BANK1) is Bank.VARIOUS
        assert space.get_bank(4) is Bank.VARIOUS
        assert space.get_bank(5) is Bank.UNKNOWN


class TestAddressSpace:

    def test_load_marks_unknown_then_unused(self):
        """Loaded bytes start UNKNOWN, the rest of the 64K is UNUSED."""
        space = AddressSpace(b"\x23\x06\x7f\xa0")
        assert space.size == len(space) == 4
        assert space.get_usage(3) is Usage.UNKNOWN
        assert space.get_usage(4) is Usage.UNUSED
        assert space.get_usage(0xFFFF) is Usage.UNUSED

    def test_load_truncates_to_64k(self):
        space = AddressSpace(bytes(ADDRESS_SPACE_SIZE + 100))
        assert space.size == ADDRESS_SPACE_SIZE

    def test_reads_past_end_are_zero(self):
        """Operand reads past $FFFF see zero padding."""
        data = bytearray(ADDRESS_SPACE_SIZE)
        data[-1] = 0x23
        space = AddressSpace(data)
        assert space.window(0xFFFF, 3) == b"\x23\x00\x00"

    def test_reload_resets_state(self):
        """Loading a new image forgets usage and banks."""
        space = AddressSpace(bytes(32))
        space.mark(0, 8, Usage.DATA)
        space.join_bank(0, Bank.BANK0)
        space.load(bytes(4))
        assert space.get_usage(0) is Usage.UNKNOWN
        assert space.get_usage(8) is Usage.UNUSED
        assert space.get_bank(0) is Bank.UNKNOWN

    def test_mark_clamps_at_end(self):
        """Regions running past $FFFF are cut at the end of the space."""
        space = AddressSpace(bytes(ADDRESS_SPACE_SIZE))
        assert space.mark(0xFFFE, 5, Usage.GRAPHICS) == 2
        assert space.get_usage(0xFFFF) is Usage.GRAPHICS

    def test_histogram_counts_loaded_bytes(self):
        """UNUSED padding is left out of the histogram."""
        space = AddressSpace(bytes(0x20))
        space.mark(0x10, 6, Usage.TEXT)
        hist = space.histogram()
        assert hist[Usage.TEXT] == 6
        assert hist[Usage.UNKNOWN] == 0x1A
        assert Usage.UNUSED not in hist
        assert space.count(Usage.UNUSED) == ADDRESS_SPACE_SIZE - 0x20

    def test_from_file(self, tmp_path):
        path = tmp_path / "game.vms"
        path.write_bytes(b"\xa0" * 10)
        space = AddressSpace.from_file(path)
        assert space.size == 10
        assert space.byte(9) == 0xA0

    def test_is_code(self):
        assert Usage.CODE.is_code and Usage.CODE_ENTRY.is_code
        assert not Usage.INVALID.is_code
