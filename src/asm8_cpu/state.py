"""CPUState: Immutable register/flag state for the asm8 CPU.

State Components:
    - gpr: General-purpose registers A, B, C, D
    - sp: Stack pointer, descending from MAX_SP
    - ip: Instruction pointer (address of the next opcode byte)
    - zero, carry: Status flags
    - fault: Sticky fault latch

All state mutations return new state objects. An instruction that fails
halfway simply never publishes the state it was building, which is what
makes a CPU step atomic.
"""

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import NamedTuple, Tuple, Union

from .errors import StackOverflow, StackUnderflow


MIN_SP = 0
MAX_SP = 231


class Register(IntEnum):
    """Narrow register context: general-purpose registers only."""
    A = 0
    B = 1
    C = 2
    D = 3


class WideRegister(IntEnum):
    """Wide register context: general-purpose registers plus SP."""
    A = 0
    B = 1
    C = 2
    D = 3
    SP = 4


AnyRegister = Union[Register, WideRegister]


class FlagResult(NamedTuple):
    """Outcome of flag normalization."""
    value: int
    carry: bool
    zero: bool


def normalize(value: int) -> FlagResult:
    """Fold a raw arithmetic result into byte range and derive flags.

    The zero flag only reflects the raw value: 256 or 512 wrap to 0 but
    report carry, not zero.

    Args:
        value: Raw (possibly negative or >= 256) result

    Returns:
        FlagResult(value, carry, zero)
    """
    if value >= 256:
        return FlagResult(value % 256, True, False)
    elif value == 0:
        return FlagResult(0, False, True)
    elif value < 0:
        return FlagResult(256 - (-value % 256), True, False)
    return FlagResult(value, False, False)


@dataclass(frozen=True)
class CPUState:
    """Immutable CPU state representation.

    Attributes:
        gpr: Values of registers A, B, C, D
        sp: Stack pointer
        ip: Instruction pointer
        zero: Zero flag
        carry: Carry flag
        fault: Whether the CPU has faulted
    """
    gpr: Tuple[int, int, int, int] = (0, 0, 0, 0)
    sp: int = MAX_SP
    ip: int = 0
    zero: bool = False
    carry: bool = False
    fault: bool = False

    def get_register(self, reg: AnyRegister) -> int:
        """Read a register. WideRegister.SP reads the stack pointer."""
        if reg is WideRegister.SP:
            return self.sp
        return self.gpr[reg]

    def set_register(self, reg: AnyRegister, value: int) -> "CPUState":
        """Create new state with a register updated.

        Writing WideRegister.SP assigns the stack pointer and re-validates it.

        Raises:
            StackOverflow: If the new stack pointer is below MIN_SP
            StackUnderflow: If the new stack pointer is above MAX_SP
        """
        if reg is WideRegister.SP:
            return self.set_sp(value)
        gpr = list(self.gpr)
        gpr[reg] = value
        return replace(self, gpr=tuple(gpr))

    def set_sp(self, sp: int) -> "CPUState":
        if sp < MIN_SP:
            raise StackOverflow()
        if sp > MAX_SP:
            raise StackUnderflow()
        return replace(self, sp=sp)

    def set_flags(self, carry: bool, zero: bool) -> "CPUState":
        return replace(self, carry=carry, zero=zero)

    def set_result(self, reg: AnyRegister, raw: int) -> "CPUState":
        """Normalize a raw result, store it in reg and update the flags."""
        result = normalize(raw)
        return self.set_flags(result.carry, result.zero).set_register(reg, result.value)

    def set_ip(self, ip: int) -> "CPUState":
        return replace(self, ip=ip)

    def set_fault(self, fault: bool = True) -> "CPUState":
        return replace(self, fault=fault)

    def snapshot(self) -> dict:
        """Plain-dict copy of the state for tracing and display."""
        return {
            "registers": dict(zip("ABCD", self.gpr)),
            "sp": self.sp,
            "ip": self.ip,
            "zero": self.zero,
            "carry": self.carry,
            "fault": self.fault,
        }

    def validate(self) -> bool:
        """Check the state invariants.

        Checks:
            - Exactly four integer registers
            - Stack pointer within [MIN_SP, MAX_SP]
            - Non-negative instruction pointer
            - Boolean flags
        """
        if len(self.gpr) != 4 or not all(isinstance(v, int) for v in self.gpr):
            return False
        if not MIN_SP <= self.sp <= MAX_SP:
            return False
        if self.ip < 0:
            return False
        return all(isinstance(flag, bool) for flag in (self.zero, self.carry, self.fault))

    def __str__(self) -> str:
        regs = " ".join(f"{name}={value}" for name, value in zip("ABCD", self.gpr))
        flags = f"Z={int(self.zero)} C={int(self.carry)} F={int(self.fault)}"
        return f"IP={self.ip} SP={self.sp} {regs} {flags}"


def create_initial_state() -> CPUState:
    """State after power-on or reset()."""
    return CPUState()
