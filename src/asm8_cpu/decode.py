"""Instruction decoding for the asm8 CPU.

Architecture:
    MEMORY -> fetch opcode -> operand signature -> typed operands -> DecodedInstruction

Operand bytes are turned into typed values as they are fetched:

    REG          -> Register         (A-D only, anything else is InvalidRegister)
    WIDE_REG     -> WideRegister     (A-D or SP)
    REG_ADDRESS  -> RegisterAddress  (base register + signed offset)
    ADDRESS      -> Address
    NUMBER       -> Immediate

Narrow and wide registers are different types, so a handler for a narrow-only
instruction can never be handed the stack pointer.

The module also renders decoded instructions back to assembly text, which is
what the execution trace and the disassembler use.
"""

from dataclasses import dataclass
from typing import List, NamedTuple, Tuple, Union

from .errors import CPUError, InvalidOpcode, InvalidRegister
from .memory import Memory, MemoryTransaction
from .opcodes import JUMPS, MNEMONICS, OPERANDS, Opcode, Operand
from .state import CPUState, Register, WideRegister


class Address(NamedTuple):
    """Absolute memory address operand."""
    value: int


class Immediate(NamedTuple):
    """Immediate number operand."""
    value: int


@dataclass(frozen=True)
class RegisterAddress:
    """Register-indirect operand: base register value plus offset.

    Attributes:
        base: Base register (any residue other than A-D selects SP)
        offset: Signed offset in [-16, 15]
    """
    base: WideRegister
    offset: int = 0

    def resolve(self, state: CPUState) -> int:
        """Effective address. Bounds are enforced by the later load/store."""
        return state.get_register(self.base) + self.offset

    def encode(self) -> int:
        """Operand byte for this reference."""
        offset = self.offset + 32 if self.offset < 0 else self.offset
        return offset * 8 + int(self.base)

    def __str__(self) -> str:
        if self.offset > 0:
            return f"[{self.base.name}+{self.offset}]"
        elif self.offset < 0:
            return f"[{self.base.name}{self.offset}]"
        return f"[{self.base.name}]"


OperandValue = Union[Register, WideRegister, RegisterAddress, Address, Immediate]


def decode_register(value: int) -> Register:
    """Decode a narrow register selector (A-D)."""
    if not 0 <= value < len(Register):
        raise InvalidRegister(value)
    return Register(value)


def decode_wide_register(value: int) -> WideRegister:
    """Decode a wide register selector (A-D or SP)."""
    if not 0 <= value < len(WideRegister):
        raise InvalidRegister(value)
    return WideRegister(value)


def decode_register_address(value: int) -> RegisterAddress:
    """Decode a register-indirect operand byte.

    The low 3 bits select the base register (0-3 a GPR, 4-7 the stack
    pointer); the remaining 5 bits are a two's complement offset.
    """
    reg = value % 8
    base = WideRegister(reg) if reg < len(Register) else WideRegister.SP
    offset = value // 8
    if offset > 15:
        offset -= 32
    return RegisterAddress(base, offset)


_OPERAND_DECODERS = {
    Operand.REG: decode_register,
    Operand.WIDE_REG: decode_wide_register,
    Operand.REG_ADDRESS: decode_register_address,
    Operand.ADDRESS: Address,
    Operand.NUMBER: Immediate,
}


def decode_opcode(value: int) -> Opcode:
    try:
        return Opcode(value)
    except ValueError:
        raise InvalidOpcode(value) from None


@dataclass(frozen=True)
class DecodedInstruction:
    """Result of decoding one instruction.

    Attributes:
        opcode: Decoded opcode
        operands: Typed operands in encoding order
        address: Address of the opcode byte
        raw: Opcode byte followed by the operand bytes
    """
    opcode: Opcode
    operands: Tuple[OperandValue, ...]
    address: int
    raw: Tuple[int, ...]

    @property
    def next_ip(self) -> int:
        """Address one past the last consumed byte."""
        return self.address + len(self.raw)

    @property
    def mnemonic(self) -> str:
        return MNEMONICS[self.opcode]

    def __str__(self) -> str:
        return format_instruction(self)


class Decoder:
    """Fetches and decodes instructions from memory."""

    def decode(self, memory: Union[Memory, MemoryTransaction], address: int) -> DecodedInstruction:
        """Decode the instruction whose opcode byte is at address.

        Args:
            memory: Memory (or a step's MemoryTransaction) to fetch from
            address: Address of the opcode byte

        Returns:
            DecodedInstruction with typed operands

        Raises:
            AddressViolation: If the instruction runs past the end of memory
            InvalidOpcode: If the opcode byte is not in the table
            InvalidRegister: If a register operand is outside its context
        """
        raw = [memory.load(address)]
        opcode = decode_opcode(raw[0])

        operands = []
        for kind in OPERANDS[opcode]:
            value = memory.load(address + len(raw))
            raw.append(value)
            operands.append(_OPERAND_DECODERS[kind](value))

        return DecodedInstruction(opcode, tuple(operands), address, tuple(raw))


# =============================================================================
# Disassembly
# =============================================================================

def format_operand(operand: OperandValue, jump: bool = False) -> str:
    if isinstance(operand, (Register, WideRegister)):
        return operand.name
    if isinstance(operand, Address):
        return str(operand.value) if jump else f"[{operand.value}]"
    if isinstance(operand, Immediate):
        return str(operand.value)
    return str(operand)


def format_instruction(decoded: DecodedInstruction) -> str:
    """Render a decoded instruction as assembly text, e.g. "MOV A, [C+2]"."""
    jump = decoded.opcode in JUMPS
    operands = ", ".join(format_operand(op, jump) for op in decoded.operands)
    return f"{decoded.mnemonic} {operands}" if operands else decoded.mnemonic


def disassemble(code: List[int], start: int = 0) -> List[Tuple[int, str]]:
    """Linear-sweep disassembly of a program image.

    Bytes that do not decode to a complete instruction are emitted as DB.

    Args:
        code: Program bytes
        start: Address of the first byte

    Returns:
        List of (address, text) pairs
    """
    memory = Memory()
    memory.load_program(code, start)
    decoder = Decoder()

    listing = []
    address = start
    end = start + len(code)
    while address < end:
        try:
            decoded = decoder.decode(memory, address)
        except CPUError:
            listing.append((address, f"DB 0x{memory.data[address]:02X}"))
            address += 1
            continue
        if decoded.next_ip > end:
            listing.append((address, f"DB 0x{memory.data[address]:02X}"))
            address += 1
            continue
        listing.append((address, format_instruction(decoded)))
        address = decoded.next_ip
    return listing
