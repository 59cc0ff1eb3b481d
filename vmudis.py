#!/usr/bin/env python3
"""
vmudis - LC86104C/108C (Dreamcast VMU) disassembler

Usage:
    python vmudis.py <image.vms> [DIRECTIVE ...] [-o output.lst] [-v]

Examples:
    python vmudis.py football.vms ENTRY0x139 > football.lst
    python vmudis.py bios.bin BIOS FONT8,0x473,0x300 -o bios.lst
"""

import sys
import os

# Allow running from project root without installing
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from lc86dis.cli import main

if __name__ == '__main__':
    sys.exit(main())
