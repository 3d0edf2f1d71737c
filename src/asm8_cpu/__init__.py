"""asm8-cpu: Simple 8-bit CPU simulator.

This package implements a byte-addressable virtual CPU with 256 bytes of
memory, four general-purpose registers (A, B, C, D), a descending stack, zero
and carry flags and a sticky fault latch, together with the assembler and
driver needed to run programs on it.

Architecture:
    SOURCE -> ASSEMBLER -> MEMORY -> FETCH -> DECODE -> REGISTRY -> STATE
                                      |         |          |          |
                                   [IP-based] [typed    [frozen    [immutable,
                                              operands]  handlers]  atomic]

Modules:
    memory: 256-byte Memory and the per-step MemoryTransaction
    opcodes: Opcode table shared with the assembler
    state: CPUState and flag normalization
    decode: Operand decoding and disassembly
    registry: Verified instruction handlers
    cpu: The step()/reset() core
    assembler: Assembly text to bytes
    simulator: Run loop, trace and display helpers
"""

__version__ = "0.1.0"

from .errors import (
    AddressViolation,
    AlreadyFaulted,
    CPUError,
    DivisionByZero,
    InvalidAddress,
    InvalidOpcode,
    InvalidRegister,
    StackOverflow,
    StackUnderflow,
)
from .memory import Memory
from .opcodes import Opcode
from .state import CPUState, Register, WideRegister, normalize
from .registry import InstructionRegistry
from .cpu import CPU
from .assembler import Assembler, AssemblerError, Assembly, assemble
from .decode import disassemble
from .simulator import CycleLimitExceeded, Simulator

__all__ = [
    "AddressViolation",
    "AlreadyFaulted",
    "Assembler",
    "AssemblerError",
    "Assembly",
    "CPU",
    "CPUError",
    "CPUState",
    "CycleLimitExceeded",
    "DivisionByZero",
    "InstructionRegistry",
    "InvalidAddress",
    "InvalidOpcode",
    "InvalidRegister",
    "Memory",
    "Opcode",
    "Register",
    "Simulator",
    "StackOverflow",
    "StackUnderflow",
    "WideRegister",
    "assemble",
    "disassemble",
    "normalize",
]
