"""
LC86K Address Space - 64K image with per-byte usage and RAM bank state

Every address carries two tags next to its byte value:

  usage  What the analysis decided the byte is (code, data, text...).
         Bytes past the end of the loaded image stay UNUSED.
  bank   For code bytes: which RAM bank (PSW bit 1) was selected when
         the instruction was reached. Joined across visits, so code
         reached under both banks ends up VARIOUS.

The byte buffer is padded past $FFFF so operand reads of an instruction
that starts in the last bytes of the space read zeros.
"""

from enum import IntEnum
from pathlib import Path
from typing import Dict, Union

ADDRESS_SPACE_SIZE = 0x10000
MAX_ADDRESS = 0xFFFF
_READ_PADDING = 3


class Usage(IntEnum):
    """Classification of one address"""
    UNUSED = 0       # not loaded from file
    UNKNOWN = 1      # loaded, not attributed yet
    CODE = 2         # first byte of an executed instruction
    CODE_ENTRY = 3   # code that deserves a label
    DATA = 4
    GRAPHICS = 5
    FONT8 = 6        # 8-bit wide font
    TEXT = 7         # null-terminated text
    INVALID = 8      # instruction continuation byte or misaligned jump target

    @property
    def is_code(self) -> bool:
        return self in (Usage.CODE, Usage.CODE_ENTRY)


class Bank(IntEnum):
    """RAM bank selected by PSW bit 1 while code executes"""
    BANK0 = 0     # system variables and the CPU stack
    BANK1 = 1     # game software; VMS OS before entering game mode
    UNKNOWN = 2
    VARIOUS = 3   # observed under both banks

    def join(self, other: "Bank") -> "Bank":
        """Least upper bound: UNKNOWN is the identity, VARIOUS absorbs."""
        if self is Bank.UNKNOWN:
            return other
        if other is Bank.UNKNOWN or other is self:
            return self
        return Bank.VARIOUS


class AddressSpace:
    """64K byte image plus usage and bank arrays"""

    def __init__(self, data: Union[bytes, bytearray] = b""):
        self.mem = bytearray(ADDRESS_SPACE_SIZE + _READ_PADDING)
        self.usage = bytearray(ADDRESS_SPACE_SIZE)            # Usage values
        self.bank = bytearray([Bank.UNKNOWN]) * ADDRESS_SPACE_SIZE
        self.size = 0
        if data:
            self.load(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "AddressSpace":
        return cls(Path(path).read_bytes())

    def load(self, data: Union[bytes, bytearray]) -> int:
        """Load an image at address 0. Anything past 64K is ignored.

        Returns the number of bytes loaded.
        """
        data = bytes(data[:ADDRESS_SPACE_SIZE])
        self.mem[:] = bytes(len(self.mem))
        self.mem[:len(data)] = data
        self.size = len(data)
        self.usage[:] = bytes([Usage.UNUSED]) * ADDRESS_SPACE_SIZE
        self.usage[:self.size] = bytes([Usage.UNKNOWN]) * self.size
        self.bank[:] = bytes([Bank.UNKNOWN]) * ADDRESS_SPACE_SIZE
        return self.size

    # ── byte access ──

    def byte(self, addr: int) -> int:
        return self.mem[addr]

    def window(self, addr: int, count: int) -> bytes:
        return bytes(self.mem[addr:addr + count])

    # ── usage / bank state ──

    def get_usage(self, addr: int) -> Usage:
        return Usage(self.usage[addr])

    def set_usage(self, addr: int, usage: Usage) -> None:
        self.usage[addr] = usage

    def get_bank(self, addr: int) -> Bank:
        return Bank(self.bank[addr])

    def join_bank(self, addr: int, bank: Bank) -> Bank:
        joined = self.get_bank(addr).join(Bank(bank))
        self.bank[addr] = joined
        return joined

    def mark(self, addr: int, count: int, usage: Usage) -> int:
        """Set usage on count bytes from addr, stopping at the end of the space.

        Returns the number of bytes marked.
        """
        marked = 0
        while count > 0 and 0 <= addr <= MAX_ADDRESS:
            self.usage[addr] = usage
            addr += 1
            count -= 1
            marked += 1
        return marked

    def count(self, usage: Usage) -> int:
        return self.usage.count(bytes([usage]))

    def histogram(self) -> Dict[Usage, int]:
        """Number of addresses per usage, loaded image only"""
        loaded = self.usage[:self.size]
        return {u: loaded.count(bytes([u])) for u in Usage if u is not Usage.UNUSED}

    def __len__(self):
        return self.size

    def __repr__(self):
        return f"AddressSpace(size=0x{self.size:04x})"
