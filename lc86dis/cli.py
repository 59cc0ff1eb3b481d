"""
vmudis - LC86104C/108C (Dreamcast VMU) disassembler CLI

Usage:
    vmudis <image.vms> [DIRECTIVE ...] [-o output.lst] [-v] [-q] [--log-file F]

Directives (see lc86dis.directives):
    STRICT  ASMOUT  BIOS  ENTRYn  GRAPHBYTESn,b  FONT8,n,b  GRAPHPAGESn,p

Examples:
    vmudis football.vms ENTRY0x139 > football.lst
    vmudis chao.vms ASMOUT -o chao.s
    vmudis bios.bin BIOS GRAPHPAGES0x0f17,4 FONT8,0x473,0x300 -v
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .analyzer import Analyzer
from .directives import MODE_KINDS, apply_directives, build_options, parse_directives
from .log import level_from_flags, setup_logging
from .memory import AddressSpace
from .opcodes import UnknownModelError
from .renderer import Renderer
from .tracer import TraceError

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vmudis",
        description="LC86104C/108C disassembler for Dreamcast VMU images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""directives:
  STRICT         kills bad 'veins'; helps prevent disassembly of bad code and
                 finds errors, but stops before all good code is disassembled
  ASMOUT         outputs cleaner code for use with an assembler
  BIOS           interpret file as a BIOS
  ENTRYn         define code starting at address n
  GRAPHBYTESn,b  define b bytes of graphics at address n
  FONT8,n,b      define b bytes of 8-bit wide fonts at address n
  GRAPHPAGESn,p  define p pages (=0xC0 bytes) of graphics at address n

Use decimal or the 0x notation, e.g.  vmudis football.vms ENTRY0x139
""",
    )
    parser.add_argument("input", help="Input image (.vms game or BIOS dump)")
    parser.add_argument("directives", nargs="*", metavar="DIRECTIVE",
                        help="Analysis directives, applied in order")
    parser.add_argument("-o", "--output", help="Output listing file (default: stdout)")
    parser.add_argument("--no-undocumented", action="store_true",
                        help="Treat $50/$51 (LDF/STF) as illegal opcodes")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Increase verbosity (-v progress, -vv trace detail)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Only report errors")
    parser.add_argument("--log-file", help="Also write a DEBUG log to this file")
    parser.add_argument("--version", action="version", version=f"vmudis {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(console_level=level_from_flags(args.verbose, args.quiet),
                  log_file=args.log_file)

    try:
        space = AddressSpace.from_file(args.input)
    except OSError as e:
        log.error("can not open %s: %s", args.input, e)
        return 1
    log.info("Source file=%s, %d (0x%04x) bytes.", args.input, space.size, space.size)

    directives, errors = parse_directives(args.directives)
    for err in errors:
        log.warning("%s", err)

    options = build_options(directives)
    options.allow_undocumented = not args.no_undocumented
    if options.strict:
        log.info("Strict mode enabled.")
    if options.asm_output:
        log.info("Assembler output mode output enabled.")
    if options.bios:
        log.info("BIOS disassembly mode enabled.")

    try:
        analyzer = Analyzer(space, options)
        apply_directives(analyzer, (d for d in directives if d.kind not in MODE_KINDS))
        summary = analyzer.run()
        renderer = Renderer(space, analyzer.tables, analyzer.iset,
                            asm_output=options.asm_output, bios=options.bios)
        listing = renderer.render_text(Path(args.input).name)
    except (TraceError, UnknownModelError) as e:
        log.critical("FATAL INTERNAL ERROR: %s", e)
        return 2

    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(listing)
        except OSError as e:
            log.error("can not write %s: %s", args.output, e)
            return 1
        log.info("Wrote listing: %s", args.output)
    else:
        sys.stdout.write(listing)

    log.info("%d text strings, %d anomalies", summary.strings_found, summary.anomaly_count)
    log.debug("Usage histogram:")
    for usage, count in summary.usage.items():
        log.debug("  %-10s %5d bytes", usage.name, count)
    return 0


if __name__ == "__main__":
    sys.exit(main())
