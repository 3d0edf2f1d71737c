"""InstructionRegistry: Verified instruction handlers for the asm8 CPU.

This module implements the registry pattern for CPU operations: every opcode
maps to a frozen handler that transforms state in a predictable, auditable
way.

Each handler is a pure function of its inputs:

    (CPUState, operands, bus) -> CPUState

The state handed to a handler already has its instruction pointer advanced
past the instruction; jumps overwrite it. Memory access goes through the bus,
a MemoryTransaction whose writes only land once the whole step has
succeeded.

Handler families:
    Data movement: MOV (all eight addressing variants)
    Arithmetic:    ADD, SUB, INC, DEC, MUL, DIV
    Comparison:    CMP
    Control flow:  JMP, JC, JNC, JZ, JNZ, JA, JNA, CALL, RET
    Stack:         PUSH, POP
    Bitwise:       AND, OR, XOR, NOT, SHL, SHR
"""

from typing import Callable, Dict, Optional, Tuple

from .decode import Address, DecodedInstruction, Immediate, OperandValue, RegisterAddress
from .errors import DivisionByZero, InvalidAddress, InvalidOpcode, StackOverflow, StackUnderflow
from .memory import MemoryTransaction
from .opcodes import Opcode
from .state import MAX_SP, MIN_SP, CPUState, Register, WideRegister, normalize


Operands = Tuple[OperandValue, ...]
Handler = Callable[[CPUState, Operands, MemoryTransaction], CPUState]


def shift_left(value: int, count: int) -> int:
    """32-bit signed left shift; the count is taken modulo 32."""
    result = (value << (count & 31)) & 0xFFFFFFFF
    return result - (1 << 32) if result & 0x80000000 else result


def shift_right(value: int, count: int) -> int:
    """32-bit logical right shift; never sign-extends."""
    return (value & 0xFFFFFFFF) >> (count & 31)


class InstructionRegistry:
    """Frozen registry of instruction handlers keyed by opcode.

    Attributes:
        _handlers: Dictionary mapping opcodes to handler functions
        _frozen: Whether the registry is locked against modifications
    """

    def __init__(self):
        """Initialize registry with every handler in the instruction set."""
        self._handlers: Dict[Opcode, Handler] = {}
        self._frozen = False
        self._register_all_handlers()
        self.freeze()

    def _register_all_handlers(self) -> None:
        # Data movement
        for opcode in (
            Opcode.MOV_REG_TO_REG, Opcode.MOV_ADDRESS_TO_REG,
            Opcode.MOV_REGADDRESS_TO_REG, Opcode.MOV_REG_TO_ADDRESS,
            Opcode.MOV_REG_TO_REGADDRESS, Opcode.MOV_NUMBER_TO_REG,
            Opcode.MOV_NUMBER_TO_ADDRESS, Opcode.MOV_NUMBER_TO_REGADDRESS,
        ):
            self.register(opcode, self._op_mov)

        # Arithmetic and comparison, four source variants each
        self._register_family(Opcode.ADD_REG_TO_REG, self._op_add)
        self._register_family(Opcode.SUB_REG_FROM_REG, self._op_sub)
        self._register_family(Opcode.CMP_REG_WITH_REG, self._op_cmp)
        self.register(Opcode.INC_REG, self._op_inc)
        self.register(Opcode.DEC_REG, self._op_dec)
        self._register_family(Opcode.MUL_REG, self._op_mul)
        self._register_family(Opcode.DIV_REG, self._op_div)

        # Control flow
        conditions = (
            (Opcode.JMP_REGADDRESS, lambda s: True),
            (Opcode.JC_REGADDRESS, lambda s: s.carry),
            (Opcode.JNC_REGADDRESS, lambda s: not s.carry),
            (Opcode.JZ_REGADDRESS, lambda s: s.zero),
            (Opcode.JNZ_REGADDRESS, lambda s: not s.zero),
            (Opcode.JA_REGADDRESS, lambda s: not s.zero and not s.carry),
            (Opcode.JNA_REGADDRESS, lambda s: s.zero or s.carry),
        )
        for opcode, condition in conditions:
            handler = self._make_jump(condition)
            self.register(opcode, handler)
            self.register(Opcode(opcode + 1), handler)
        self.register(Opcode.CALL_REGADDRESS, self._op_call)
        self.register(Opcode.CALL_ADDRESS, self._op_call)
        self.register(Opcode.RET, self._op_ret)

        # Stack
        self._register_family(Opcode.PUSH_REG, self._op_push)
        self.register(Opcode.POP_REG, self._op_pop)

        # Bitwise
        self._register_family(Opcode.AND_REG_WITH_REG, self._make_binary(lambda a, b: a & b))
        self._register_family(Opcode.OR_REG_WITH_REG, self._make_binary(lambda a, b: a | b))
        self._register_family(Opcode.XOR_REG_WITH_REG, self._make_binary(lambda a, b: a ^ b))
        self.register(Opcode.NOT_REG, self._op_not)
        self._register_family(Opcode.SHL_REG_WITH_REG, self._make_binary(shift_left))
        self._register_family(Opcode.SHR_REG_WITH_REG, self._make_binary(shift_right))

    def _register_family(self, first: Opcode, handler: Handler) -> None:
        """Register handler for the REG, REGADDRESS, ADDRESS and NUMBER variants."""
        for i in range(4):
            self.register(Opcode(first + i), handler)

    def register(self, opcode: Opcode, handler: Handler) -> None:
        """Register an instruction handler.

        Raises:
            RuntimeError: If registry is frozen
            ValueError: If opcode already registered
        """
        if self._frozen:
            raise RuntimeError("Cannot register handlers: registry is frozen")
        if opcode in self._handlers:
            raise ValueError(f"Handler already registered: {opcode.name}")
        self._handlers[opcode] = handler

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        return self._frozen

    def get_valid_opcodes(self) -> set:
        return set(self._handlers.keys())

    def execute(self, state: CPUState, decoded: DecodedInstruction, bus: MemoryTransaction) -> CPUState:
        """Execute a decoded instruction.

        Args:
            state: Current CPU state
            decoded: Instruction to execute
            bus: Memory transaction for this step

        Returns:
            New CPU state after execution

        Raises:
            InvalidOpcode: If no handler is registered for the opcode
        """
        handler = self._handlers.get(decoded.opcode)
        if handler is None:
            raise InvalidOpcode(decoded.opcode)
        return handler(state.set_ip(decoded.next_ip), decoded.operands, bus)

    # =========================================================================
    # Operand access
    # =========================================================================

    def _read(self, state: CPUState, operand: OperandValue, bus: MemoryTransaction) -> int:
        """Value of a source operand."""
        if isinstance(operand, (Register, WideRegister)):
            return state.get_register(operand)
        if isinstance(operand, RegisterAddress):
            return bus.load(operand.resolve(state))
        if isinstance(operand, Address):
            return bus.load(operand.value)
        return operand.value

    def _write(self, state: CPUState, operand: OperandValue, value: int,
               bus: MemoryTransaction) -> CPUState:
        """Store value into a destination operand."""
        if isinstance(operand, (Register, WideRegister)):
            return state.set_register(operand, value)
        if isinstance(operand, RegisterAddress):
            bus.store(operand.resolve(state), value)
        else:
            bus.store(operand.value, value)
        return state

    # =========================================================================
    # Data movement
    # =========================================================================

    def _op_mov(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        """MOV dest, src - copy without touching the flags."""
        dest, src = operands
        return self._write(state, dest, self._read(state, src, bus), bus)

    # =========================================================================
    # Arithmetic
    # =========================================================================

    def _op_add(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        dest, src = operands
        return state.set_result(dest, state.get_register(dest) + self._read(state, src, bus))

    def _op_sub(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        dest, src = operands
        return state.set_result(dest, state.get_register(dest) - self._read(state, src, bus))

    def _op_inc(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        (dest,) = operands
        return state.set_result(dest, state.get_register(dest) + 1)

    def _op_dec(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        (dest,) = operands
        return state.set_result(dest, state.get_register(dest) - 1)

    def _op_mul(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        """MUL src - A = A * src."""
        (src,) = operands
        return state.set_result(Register.A, state.gpr[Register.A] * self._read(state, src, bus))

    def _op_div(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        """DIV src - A = floor(A / src)."""
        (src,) = operands
        divisor = self._read(state, src, bus)
        if divisor == 0:
            raise DivisionByZero()
        return state.set_result(Register.A, state.gpr[Register.A] // divisor)

    # =========================================================================
    # Comparison
    # =========================================================================

    def _op_cmp(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        """CMP reg, src - flags of reg - src, result discarded."""
        reg, src = operands
        result = normalize(state.get_register(reg) - self._read(state, src, bus))
        return state.set_flags(result.carry, result.zero)

    # =========================================================================
    # Control flow
    # =========================================================================

    def _target(self, state: CPUState, operand: OperandValue) -> int:
        if isinstance(operand, Register):
            return state.gpr[operand]
        return operand.value

    def _jump(self, state: CPUState, address: int, bus: MemoryTransaction) -> CPUState:
        if address < 0 or address >= len(bus.memory):
            raise InvalidAddress(address)
        return state.set_ip(address)

    def _make_jump(self, condition: Callable[[CPUState], bool]) -> Handler:
        def handler(state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
            (target,) = operands
            if condition(state):
                return self._jump(state, self._target(state, target), bus)
            return state
        return handler

    def _op_call(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        """CALL target - push the return address, then jump."""
        (target,) = operands
        state = self._push(state, state.ip, bus)
        return self._jump(state, self._target(state, target), bus)

    def _op_ret(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        state, address = self._pop(state, bus)
        return self._jump(state, address, bus)

    # =========================================================================
    # Stack
    # =========================================================================

    def _push(self, state: CPUState, value: int, bus: MemoryTransaction) -> CPUState:
        bus.store(state.sp, value)
        sp = state.sp - 1
        if sp < MIN_SP:
            raise StackOverflow()
        return state.set_sp(sp)

    def _pop(self, state: CPUState, bus: MemoryTransaction) -> Tuple[CPUState, int]:
        sp = state.sp + 1
        value = bus.load(sp)
        if sp > MAX_SP:
            raise StackUnderflow()
        return state.set_sp(sp), value

    def _op_push(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        (src,) = operands
        return self._push(state, self._read(state, src, bus), bus)

    def _op_pop(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        (dest,) = operands
        state, value = self._pop(state, bus)
        return state.set_register(dest, value)

    # =========================================================================
    # Bitwise
    # =========================================================================

    def _make_binary(self, operation: Callable[[int, int], int]) -> Handler:
        def handler(state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
            dest, src = operands
            return state.set_result(dest, operation(state.gpr[dest], self._read(state, src, bus)))
        return handler

    def _op_not(self, state: CPUState, operands: Operands, bus: MemoryTransaction) -> CPUState:
        (dest,) = operands
        return state.set_result(dest, ~state.gpr[dest])


# Singleton registry instance
_registry: Optional[InstructionRegistry] = None


def get_registry() -> InstructionRegistry:
    """Get the singleton instruction registry.

    Returns:
        The frozen InstructionRegistry instance
    """
    global _registry
    if _registry is None:
        _registry = InstructionRegistry()
    return _registry
