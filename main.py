#!/usr/bin/env python3
"""asm8-cpu Command Line Interface.

Run assembly or binary programs on the asm8 simulator.

Usage:
    python main.py --program programs/hello.asm
    python main.py --binary programs/hello.bin --trace
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from asm8_cpu import AssemblerError, CPUError, CycleLimitExceeded, Simulator


def main():
    parser = argparse.ArgumentParser(
        description="asm8-cpu: Simple 8-bit CPU simulator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run an assembly program
    python main.py --program programs/hello.asm

    # Run with full trace output
    python main.py --program programs/hello.asm --trace

    # Run a pre-assembled image
    python main.py --binary programs/hello.bin

    # Run inline assembly (separate statements with |)
    python main.py --inline "MOV A, 5 | ADD A, 3 | HLT"
        """
    )

    parser.add_argument(
        "--program", "-p",
        type=str,
        help="Path to assembly program file (.asm)"
    )
    parser.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline assembly (separate statements with |)"
    )
    parser.add_argument(
        "--binary", "-b",
        type=str,
        help="Path to a raw program image (at most 256 bytes)"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=Simulator.DEFAULT_MAX_CYCLES,
        help=f"Maximum execution cycles (safety limit). Default: {Simulator.DEFAULT_MAX_CYCLES}"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (final registers only)"
    )
    parser.add_argument(
        "--hex",
        action="store_true",
        help="Show register values in hexadecimal"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level. DEBUG logs every executed instruction. Default: WARNING"
    )

    args = parser.parse_args()

    sources = [s for s in (args.program, args.inline, args.binary) if s]
    if len(sources) != 1:
        parser.error("Exactly one of --program, --inline or --binary is required")

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s"
    )

    sim = Simulator(max_cycles=args.max_cycles)

    # Load program
    try:
        if args.program or args.binary:
            path = Path(args.program or args.binary)
            if not path.exists():
                print(f"Error: Program file not found: {path}")
                return 1
            if args.binary:
                sim.load_binary(path.read_bytes())
            else:
                sim.load_program(path.read_text())
            if not args.quiet:
                print(f"Loading program: {path}")
        else:
            sim.load_program(args.inline.replace("|", "\n"))
            if not args.quiet:
                print("Running inline assembly")
    except AssemblerError as e:
        print(f"Assembly error: {e}")
        return 1
    except CPUError as e:
        print(f"Load error: {e}")
        return 1

    # Run
    if not args.quiet:
        print("-" * 60)
        print("Executing...")
        print("-" * 60)

    try:
        sim.run()
    except CPUError as e:
        print(f"CPU fault: {e}")
    except CycleLimitExceeded as e:
        print(f"Execution error: {e}")

    def fmt(value):
        return f"0x{value:02X}" if args.hex else str(value)

    # Output
    if args.trace:
        sim.print_trace()
    elif not args.quiet:
        print()
        summary = sim.get_summary()
        registers = {reg: fmt(value) for reg, value in summary["registers"].items()}
        print(f"Cycles: {summary['cycles']}")
        print(f"Halted: {summary['halted']}")
        print(f"Registers: {registers}  SP={fmt(summary['sp'])}  IP={fmt(summary['ip'])}")
        print(f"Flags: {summary['flags']}")
        print(f"Output: {summary['output'].rstrip()}")
        if summary["errors"]:
            print(f"Errors: {summary['errors']}")
    else:
        # Quiet mode - just print final registers
        for reg, value in sim.dump_registers().items():
            if value != 0:
                print(f"{reg}={fmt(value)}")

    # Return exit code based on halted state
    return 0 if sim.is_halted() else 1


if __name__ == "__main__":
    sys.exit(main())
