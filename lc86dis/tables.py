"""
VMU symbol tables - register names, RAM variables, labels, auto-comments
and the BIOS firmware call map.

These are device knowledge, not analysis logic: the tracer only reads
FIRMWARE_CALLS and the renderer reads the rest. Swap in another
SymbolTables instance to disassemble images for a different BIOS.

Sources: LC86104C/108C datasheet SFR map, VMU BIOS 1.002 disassembly
(1998/06/04, 315-6124-03), register list by Alexander Villagran.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple


def _first_wins(pairs: Iterable[Tuple[int, str]]) -> Dict[int, str]:
    """Build an address -> name map; the first name listed for an address is kept."""
    table: Dict[int, str] = {}
    for addr, name in pairs:
        table.setdefault(addr, name)
    return table


# =============================================================================
#  SPECIAL FUNCTION REGISTERS ($100-$1FF)
# =============================================================================
SFR_NAMES = _first_wins([
    (0x100, "ACC"),
    (0x101, "PSW"),
    (0x102, "B"),
    (0x103, "C"),
    (0x104, "TRL"),
    (0x105, "TRH"),
    (0x106, "SP"),
    (0x107, "PCON"),
    (0x108, "IE"),
    (0x109, "IP"),       # interrupt priority ranking
    (0x10D, "EXT"),      # external memory control
    (0x10E, "OCR"),      # oscillation control: 32kHz, 600kHz or 6MHz
    (0x110, "T0CON"),
    (0x111, "T0PRR"),    # timer 0 prescaler data
    (0x112, "T0L"),
    (0x113, "T0LR"),
    (0x114, "T0H"),
    (0x115, "T0HR"),
    (0x118, "T1CNT"),
    (0x11A, "T1LC"),     # timer 1 low compare data
    (0x11B, "T1L"),
    (0x11B, "T1LR"),
    (0x11C, "T1HC"),
    (0x11D, "T1H"),
    (0x11D, "T1HR"),
    (0x120, "MCR"),      # mode control
    (0x122, "STAD"),     # start address
    (0x123, "CNR"),      # character number
    (0x124, "TDR"),      # time division
    (0x125, "XBNK"),     # bank address
    (0x127, "VCCR"),     # LCD contrast control
    (0x130, "SCON0"),
    (0x131, "SBUF0"),
    (0x132, "SBR"),      # SIO baud rate generator
    (0x134, "SCON1"),
    (0x135, "SBUF1"),
    (0x144, "P1"),
    (0x145, "P1DDR"),
    (0x146, "P1FCR"),
    (0x14C, "P3"),
    (0x14D, "P3DDR"),
    (0x14E, "P3INT"),
    (0x154, "FLASHA16"), # bit 0 selects flash A17 for LDF/STF
    (0x15C, "P7"),
    (0x15D, "I01CR"),
    (0x15E, "I23CR"),
    (0x15F, "ISL"),      # input signal selection
    (0x163, "VSEL"),
    (0x164, "VRMAD1"),   # work RAM access address 1
    (0x165, "VRMAD2"),
    (0x166, "VTRBF"),    # work RAM send/receive buffer
    (0x167, "VLREG"),
    (0x17F, "BTCR"),     # base timer control
    (0x180, "XRAM"),     # $180-$1FB, bank selected by XBNK
])


# =============================================================================
#  RAM VARIABLES
# =============================================================================
# Keys are "banked" addresses: $000-$0FF is bank 0 (OS), $100-$1FF is the
# same direct range seen through bank 1 (game).
RAM_NAMES = _first_wins([
    (0x017, "CD_YEARHI"),
    (0x018, "CD_YEARLO"),
    (0x019, "CD_MONTH"),
    (0x01A, "CD_DAY"),
    (0x01B, "CD_HOUR"),
    (0x01C, "CD_MINUTE"),
    (0x01D, "CD_SECOND"),
    (0x01E, "CD_HALFSEC"),
    (0x01F, "CD_LEAPYR"),           # odd = leap year
    (0x031, "CD_CLOCKSET"),         # $FF = date set
    (0x033, "AUTO_SLEEP_TIMER"),    # incremented at 2Hz by T1
    (0x034, "T1SoftCtr2"),          # 2Hz counter: beep timing, icon blink
    (0x035, "SLEEP_MODE"),
    (0x050, "CD_YRDIV4HI"),
    (0x051, "CD_YRDIV4LO"),
    (0x060, "CURSOR_X"),
    (0x061, "CURSOR_Y"),
    (0x067, "LCD_BKGROUND"),
    (0x06D, "GAME_LASTBLK"),
    (0x06E, "BATT_CHECK_DISABLE"),
    (0x06F, "FLASHA16_SHADOW"),
    (0x070, "BUTTONS_PRESSED"),
    (0x071, "BUTTONS_READ"),
    (0x072, "BUTTONS_LAST"),
    (0x080, "STACK"),
    (0x17C, "FL_FINAL"),
    (0x17D, "FL_ADDR_MSB"),         # flash address, 24 bits big endian
    (0x17E, "FL_ADDR_MED"),
    (0x17F, "FL_ADDR_LSB"),
    (0x17F, "FL_BUFFER"),
])


# =============================================================================
#  CODE LABELS
# =============================================================================
CODE_LABELS = _first_wins([
    (0x0000, "reset"),
    (0x0003, "int0"),
    (0x000B, "int1"),
    (0x0013, "int2_T0L"),
    (0x001B, "int3_BT"),
    (0x0023, "intT0H"),
    (0x002B, "intT1"),
    (0x0033, "intSIO0"),
    (0x003B, "intSIO1"),
    (0x0043, "intRFB"),
    (0x004B, "intP3"),
    (0x0100, "writeFlash"),
    (0x0108, "writeFlash2"),
    (0x0110, "verifyFlash"),
    (0x0120, "readFlash"),
    (0x0130, "intT1link"),
    (0x0140, "unknownlink"),
    (0x01F0, "quit"),
    (0x0473, "font0"),          # BIOS 1.002 only
    (0x0F17, "fishgraphics"),   # BIOS 1.002 only
])


# =============================================================================
#  INSTRUCTION COMMENTS
# =============================================================================

@dataclass(frozen=True)
class CodeComment:
    """Remark attached to instructions whose first bytes match pattern.

    None in the pattern matches any byte.
    """
    pattern: Tuple[Optional[int], ...]
    text: str

    def matches(self, code: Sequence[int]) -> bool:
        return all(want is None or want == got
                   for want, got in zip(self.pattern, code))


_ = None

CODE_COMMENTS: List[CodeComment] = [CodeComment(p, t) for p, t in [
    ((0xB8, 0x0D, _), "execute code in other bank"),          # NOT1 EXT,0
    ((0x23, 0x4C, 0xFF), "allow us to read buttons"),         # MOV #$ff,P3

    ((0x98, 0x4C, _), "branch if up button pressed"),         # BN P3,0
    ((0x99, 0x4C, _), "branch if down button pressed"),
    ((0x9A, 0x4C, _), "branch if left button pressed"),
    ((0x9B, 0x4C, _), "branch if right button pressed"),
    ((0x9C, 0x4C, _), "branch if A button pressed"),
    ((0x9D, 0x4C, _), "branch if B button pressed"),
    ((0x9E, 0x4C, _), "branch if Mode button pressed"),
    ((0x9F, 0x4C, _), "branch if Sleep button pressed"),

    ((0x78, 0x4C, _), "branch if up button isn't pressed"),   # BP P3,0
    ((0x79, 0x4C, _), "branch if down button isn't pressed"),
    ((0x7A, 0x4C, _), "branch if left button isn't pressed"),
    ((0x7B, 0x4C, _), "branch if right button isn't pressed"),
    ((0x7C, 0x4C, _), "branch if A button isn't pressed"),
    ((0x7D, 0x4C, _), "branch if B button isn't pressed"),
    ((0x7E, 0x4C, _), "branch if Mode button isn't pressed"),
    ((0x7F, 0x4C, _), "branch if Sleep button isn't pressed"),
    ((0x03, 0x4C, _), "read buttons"),                        # LD P3

    ((0x78, 0x5C, _), "branch if Dreamcast connected"),       # BP P7,0
    ((0x98, 0x5C, _), "branch if Dreamcast isn't connected"),

    ((0x23, 0x27, 0x00), "turn off LCD"),                     # MOV #$00,VCCR
    ((0x23, 0x27, 0x80), "turn on LCD"),

    ((0xF8, 0x07, _), "hold- CPU & timers sleep until interrupt"),  # SET1 PCON,0
    ((0xF9, 0x07, _), "halt- CPU sleeps until interrupt"),

    ((0x03, 0x66, _), "read from work RAM"),                  # LD VTRBF
    ((0x13, 0x66, _), "write to work RAM"),

    ((0x23, 0x0E, 0xA1), "set 32 kHz clock speed (normal)"),  # MOV #$a1,OCR
    ((0x23, 0x0E, 0x81), "set 600 kHz clock speed (LCD speed)"),
    ((0x23, 0x0E, 0xA3), "set 32 kHz clock speed (normal), stop RC clock"),
    ((0x23, 0x0E, 0x92), "set 6 MHz clock speed (docked)"),
    ((0xFD, 0x0E, _), "set subclock mode (set to 32kHz)"),    # SET1 OCR,5
    ((0xDD, 0x0E, _), "clear subclock mode (set to 600kHz)"),

    ((0xDF, 0x08, _), "disable all interrupts"),              # CLR1 IE,7
    ((0xD8, 0x4E, _), "disable port 3 interrupts"),
    ((0xF8, 0x4E, _), "enable port 3 interrupts"),
    ((0xD9, 0x4E, _), "clear port 3 interrupt flag"),

    ((0x9F, 0x01, _), "branch if carry clear"),               # BN PSW,7
    ((0x7F, 0x01, _), "branch if carry set"),
    ((0xDF, 0x01, _), "clear carry flag"),
    ((0xFF, 0x01, _), "set carry flag"),

    ((0xF9, 0x01, _), "access game ram bank"),                # SET1 PSW,1
    ((0xD9, 0x01, _), "access OS ram bank"),                  # CLR1 PSW,1

    ((0x30, _, _), " B:ACC:C <- ACC:C * B"),                  # MUL
    ((0x40, _, _), " ACC:C remainder B <- ACC:C / B"),        # DIV

    ((0x23, 0x06, 0x7F), "init stack pointer"),               # MOV #$7f,SP
    ((0x21, 0x00, 0x00), "start user's game"),                # JMPF reset (OS only)

    ((0x23, 0x81, 0x00), "turn off File icon (if xbnk=2)"),
    ((0x23, 0x82, 0x00), "turn off Game icon (if xbnk=2)"),
    ((0x23, 0x83, 0x00), "turn off Clock icon (if xbnk=2)"),
    ((0x23, 0x84, 0x00), "turn off Flash icon (if xbnk=2)"),
    ((0x23, 0x81, 0x40), "turn on File icon (if xbnk=2)"),
    ((0x23, 0x82, 0x10), "turn on Game icon (if xbnk=2)"),
    ((0x23, 0x83, 0x04), "turn on Clock icon (if xbnk=2)"),
    ((0x23, 0x84, 0x01), "turn on Flash icon (if xbnk=2)"),
    ((0xBE, 0x81, _), "blink File Icon (if xbnk=2)"),
    ((0xBC, 0x82, _), "blink Game Icon (if xbnk=2)"),
    ((0xBA, 0x83, _), "blink Clock Icon (if xbnk=2)"),

    ((0xD9, 0x18, _), "Clear Timer1 low overflow"),
    ((0xDB, 0x18, _), "Clear Timer1 high overflow"),
    ((0x23, 0x18, 0x00), "Stop Timer1 (sound off)"),
    ((0x23, 0x18, 0x50), "Start Timer1 low (sound on)"),

    ((0xF9, 0x54, _), "enable FLASH write, part 1 of 3"),
    ((0xD9, 0x54, _), "enable FLASH write, part 3 of 3"),
    ((0x23, 0x54, 0x01), "access saved-game area of FLASH"),
    ((0x23, 0x54, 0x00), "access VMU area of FLASH"),

    ((0xD8, 0x44, _), "Clears the P10 latch (P10/S00)"),
    ((0xDA, 0x44, _), "Clears the P12 latch (P12/SCK0)"),
    ((0xDB, 0x44, _), "Clears the P13 latch (P13/S01)"),
    ((0x23, 0x31, 0x00), "Clear the serial tx buffer"),
    ((0x23, 0x35, 0x00), "Clear the serial rx buffer"),
    ((0xFB, 0x30, _), "Start sending character"),
    ((0xD9, 0x34, _), "Resets the transfer end flag (rx)"),
    ((0xFB, 0x34, _), "Starts transfer (rx)"),
    ((0x99, 0x30, _), "If data is done transmitting, branch"),
]]


# =============================================================================
#  FIRMWARE CALLS
# =============================================================================
# Key: address right after the NOT1 EXT,0 that switches to BIOS ROM.
# Value: where execution resumes in the image, or None if it never returns.
FIRMWARE_CALLS: Dict[int, Optional[int]] = {
    0x102: 0x105,   # writeFlash
    0x10A: 0x10B,   # writeFlash2
    0x112: 0x115,   # verifyFlash
    0x122: 0x125,   # readFlash
    0x136: 0x139,   # intT1link
    0x142: 0x145,   # BIOS sleep routine
    0x1F2: None,    # quit vector
}


@dataclass
class SymbolTables:
    """Name tables injected into the tracer and the renderer"""
    sfr_names: Dict[int, str] = field(default_factory=lambda: dict(SFR_NAMES))
    ram_names: Dict[int, str] = field(default_factory=lambda: dict(RAM_NAMES))
    code_labels: Dict[int, str] = field(default_factory=lambda: dict(CODE_LABELS))
    code_comments: List[CodeComment] = field(default_factory=lambda: list(CODE_COMMENTS))
    firmware_calls: Dict[int, Optional[int]] = field(default_factory=lambda: dict(FIRMWARE_CALLS))

    def comments_for(self, code: Sequence[int]) -> List[str]:
        """All comments whose pattern matches the instruction's first bytes"""
        return [c.text for c in self.code_comments if c.matches(code)]


DEFAULT_TABLES = SymbolTables()
