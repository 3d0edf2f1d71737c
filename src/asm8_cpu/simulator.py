"""Simulator: execution driver for the asm8 CPU.

This module implements the run loop around the core:
    SOURCE -> ASSEMBLER -> MEMORY -> CPU.step() ... -> TRACE

The simulator owns one CPU + Memory pair, installs programs, steps or runs
them under a cycle limit and records an execution trace of every step for
auditability and display.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .assembler import Assembler, Assembly
from .cpu import CPU
from .errors import CPUError
from .memory import Memory
from .opcodes import Opcode

logger = logging.getLogger(__name__)


class CycleLimitExceeded(RuntimeError):
    """run() hit its cycle limit before the program halted."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Max cycles ({limit}) exceeded")


@dataclass
class ExecutionTraceEntry:
    """Single entry in the execution trace.

    Attributes:
        cycle: Cycle number (0-indexed)
        address: Address of the instruction
        instruction: Disassembled instruction text
        opcode: Decoded opcode, None if decoding failed
        pre_state: State snapshot before execution
        post_state: State snapshot after execution
        halted: Whether this step reached the NONE opcode
        error: Error message if execution faulted
    """
    cycle: int
    address: int
    instruction: str
    opcode: Optional[Opcode]
    pre_state: dict
    post_state: dict
    halted: bool = False
    error: Optional[str] = None


class Simulator:
    """Assembles, loads and runs programs on an asm8 CPU.

    Attributes:
        memory: Memory shared with the CPU
        cpu: The CPU core
        assembler: Assembler used by load_program()
        assembly: Last assembled program (None for binary loads)
        trace: List of execution trace entries
        max_cycles: Maximum cycles for run() (safety limit)
        output_start: First address of the memory-mapped output display
    """

    DEFAULT_MAX_CYCLES = 10000
    OUTPUT_START = 232

    def __init__(
        self,
        max_cycles: int = DEFAULT_MAX_CYCLES,
        output_start: int = OUTPUT_START,
        memory: Optional[Memory] = None,
    ):
        self.memory = memory or Memory()
        self.cpu = CPU(self.memory)
        self.assembler = Assembler(len(self.memory))
        self.assembly: Optional[Assembly] = None
        self.trace: List[ExecutionTraceEntry] = []
        self.max_cycles = max_cycles
        self.output_start = output_start
        self._halted = False

    # =========================================================================
    # Loading
    # =========================================================================

    def reset(self) -> None:
        """Reset the CPU, clear memory and forget the loaded program."""
        self.cpu.reset()
        self.memory.reset()
        self.assembly = None
        self.trace = []
        self._halted = False

    def load_program(self, source: str) -> Assembly:
        """Assemble source and install it at address 0.

        Raises:
            AssemblerError: If the source does not assemble
        """
        self.reset()
        assembly = self.assembler.assemble(source)
        self.memory.load_program(assembly.code)
        self.assembly = assembly
        logger.info("Loaded program: %d bytes, %d labels", len(assembly.code), len(assembly.labels))
        return assembly

    def load_binary(self, code: Sequence[int]) -> None:
        """Install a pre-assembled program image at address 0."""
        self.reset()
        self.memory.load_program(code)
        logger.info("Loaded binary: %d bytes", len(code))

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> ExecutionTraceEntry:
        """Execute a single instruction and record it.

        Returns:
            ExecutionTraceEntry for the step

        Raises:
            CPUError: If the instruction faulted (the entry is still recorded)
        """
        pre_state = self.cpu.state.snapshot()
        address = self.cpu.ip

        error = None
        halted = False
        try:
            halted = not self.cpu.step()
        except CPUError as e:
            error = str(e)
            raise
        finally:
            decoded = self.cpu.last_instruction
            entry = ExecutionTraceEntry(
                cycle=len(self.trace),
                address=address,
                instruction=str(decoded) if decoded else "<invalid>",
                opcode=decoded.opcode if decoded else None,
                pre_state=pre_state,
                post_state=self.cpu.state.snapshot(),
                halted=halted,
                error=error,
            )
            self.trace.append(entry)
            self._halted = halted

        return entry

    def run(self, max_cycles: Optional[int] = None) -> List[ExecutionTraceEntry]:
        """Run until the NONE opcode.

        Args:
            max_cycles: Override maximum cycles (uses instance default if None)

        Returns:
            Complete execution trace

        Raises:
            CPUError: If the program faulted
            CycleLimitExceeded: If the limit was reached first
        """
        limit = max_cycles if max_cycles is not None else self.max_cycles
        executed = 0

        while not self._halted:
            if executed >= limit:
                logger.warning("Stopping after %d cycles without reaching HLT", limit)
                raise CycleLimitExceeded(limit)
            self.step()
            executed += 1

        return self.trace

    # =========================================================================
    # Inspection
    # =========================================================================

    def get_register(self, reg: str) -> int:
        """Value of register A-D or SP (case insensitive)."""
        name = reg.upper()
        if name == "SP":
            return self.cpu.sp
        if name not in ("A", "B", "C", "D"):
            raise KeyError(f"Invalid register: {reg}")
        return self.cpu.gpr["ABCD".index(name)]

    def dump_registers(self) -> Dict[str, int]:
        return dict(zip("ABCD", self.cpu.gpr))

    def get_flags(self) -> Dict[str, bool]:
        return {"zero": self.cpu.zero, "carry": self.cpu.carry, "fault": self.cpu.fault}

    def get_ip(self) -> int:
        return self.cpu.ip

    def get_cycle_count(self) -> int:
        return len(self.trace)

    def is_halted(self) -> bool:
        return self._halted

    def is_faulted(self) -> bool:
        return self.cpu.fault

    def current_line(self) -> Optional[int]:
        """Source line index of the instruction at IP, if known."""
        if self.assembly is None:
            return None
        return self.assembly.mapping.get(self.cpu.ip)

    def output(self) -> str:
        """Memory-mapped display: cells from output_start on, as characters."""
        chars = []
        for value in self.memory.data[self.output_start:]:
            char = chr(value) if 0 < value < 0x110000 else " "
            chars.append(char if char.isprintable() and not char.isspace() else " ")
        return "".join(chars)

    def print_trace(self) -> None:
        """Print execution trace in human-readable format."""
        print("=" * 70)
        print("ASM8 EXECUTION TRACE")
        print("=" * 70)

        for entry in self.trace:
            status = "OK" if not entry.error else f"FAULT: {entry.error}"
            if entry.halted:
                status = "HALT"
            print(f"\n[Cycle {entry.cycle}] {status}")
            print(f"  {entry.address:3d}: {entry.instruction}")

            pre_regs = entry.pre_state["registers"]
            post_regs = entry.post_state["registers"]
            changes = [
                f"{reg}: {pre_regs[reg]} -> {post_regs[reg]}"
                for reg in sorted(pre_regs)
                if pre_regs[reg] != post_regs[reg]
            ]
            for key in ("sp", "zero", "carry"):
                if entry.pre_state[key] != entry.post_state[key]:
                    changes.append(f"{key.upper()}: {entry.pre_state[key]} -> {entry.post_state[key]}")
            if changes:
                print(f"  Changes: {', '.join(changes)}")

        print("\n" + "=" * 70)
        print("FINAL STATE")
        print("=" * 70)
        print(f"  Registers: {self.dump_registers()}")
        print(f"  SP: {self.cpu.sp}  IP: {self.cpu.ip}")
        print(f"  Flags: {self.get_flags()}")
        print(f"  Cycles: {self.get_cycle_count()}")
        print(f"  Output: {self.output().rstrip()!r}")

    def get_summary(self) -> Dict:
        """Execution statistics and final state."""
        return {
            "cycles": self.get_cycle_count(),
            "halted": self.is_halted(),
            "faulted": self.is_faulted(),
            "registers": self.dump_registers(),
            "sp": self.cpu.sp,
            "ip": self.cpu.ip,
            "flags": self.get_flags(),
            "output": self.output(),
            "errors": [e.error for e in self.trace if e.error],
        }
