"""Exception hierarchy for the asm8 CPU core.

Every failure the core can report derives from CPUError. Any CPUError raised
while executing an instruction latches the CPU fault flag; AlreadyFaulted is
the one error that presupposes the latch is already set.
"""

from typing import Optional


class CPUError(RuntimeError):
    """Base class for all CPU and memory faults."""


class AddressViolation(CPUError):
    """Memory or instruction pointer address outside [0, 255]."""

    def __init__(self, address: int, message: Optional[str] = None):
        self.address = address
        super().__init__(message or f"Memory access violation at {address}")


class InvalidRegister(CPUError):
    """Register operand outside the set allowed by its context."""

    def __init__(self, register: int):
        self.register = register
        super().__init__(f"Invalid register: {register}")


class StackOverflow(CPUError):
    """Stack pointer pushed below its lower bound."""

    def __init__(self):
        super().__init__("Stack overflow")


class StackUnderflow(CPUError):
    """Stack pointer popped above its upper bound."""

    def __init__(self):
        super().__init__("Stack underflow")


class InvalidAddress(CPUError):
    """Jump target outside memory."""

    def __init__(self, address: int):
        self.address = address
        super().__init__(f"IP outside memory: {address}")


class DivisionByZero(CPUError):
    """DIV with a zero divisor."""

    def __init__(self):
        super().__init__("Division by 0")


class InvalidOpcode(CPUError):
    """Opcode byte not present in the instruction table."""

    def __init__(self, opcode: int):
        self.opcode = opcode
        super().__init__(f"Invalid op code: {opcode}")


class AlreadyFaulted(CPUError):
    """step() called while the fault latch is set."""

    def __init__(self):
        super().__init__("FAULT. Reset to continue.")
