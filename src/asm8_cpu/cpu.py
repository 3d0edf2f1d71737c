"""CPU: fetch-decode-execute core of the asm8 machine.

Each step() runs exactly one instruction:

    FETCH (IP) -> DECODE (typed operands) -> REGISTRY (handler) -> COMMIT

The handler works on an immutable CPUState and a MemoryTransaction. Only if
the whole instruction succeeds are the new state and the buffered memory
writes published, so a failing instruction leaves nothing half-applied. The
failure then latches the fault flag, and every further step() is refused
until reset().
"""

import logging
from typing import Optional, Tuple

from .decode import DecodedInstruction, Decoder
from .errors import AddressViolation, AlreadyFaulted
from .memory import Memory, MemoryTransaction
from .opcodes import Opcode
from .registry import InstructionRegistry, get_registry
from .state import MAX_SP, MIN_SP, CPUState, create_initial_state

logger = logging.getLogger(__name__)


class CPU:
    """Single-core 8-bit CPU executing from a shared Memory.

    Attributes:
        memory: Memory the CPU executes against (not owned)
        decoder: Instruction decoder
        registry: Frozen instruction handler registry
        last_instruction: Instruction decoded by the latest step(), None if it failed first
    """

    MAX_SP = MAX_SP
    MIN_SP = MIN_SP

    def __init__(self, memory: Memory, registry: Optional[InstructionRegistry] = None):
        self.memory = memory
        self.decoder = Decoder()
        self.registry = registry or get_registry()
        self.last_instruction: Optional[DecodedInstruction] = None
        self._state = create_initial_state()

    # =========================================================================
    # Read-only view
    # =========================================================================

    @property
    def state(self) -> CPUState:
        return self._state

    @property
    def gpr(self) -> Tuple[int, int, int, int]:
        return self._state.gpr

    @property
    def sp(self) -> int:
        return self._state.sp

    @property
    def ip(self) -> int:
        return self._state.ip

    @property
    def zero(self) -> bool:
        return self._state.zero

    @property
    def carry(self) -> bool:
        return self._state.carry

    @property
    def fault(self) -> bool:
        return self._state.fault

    # =========================================================================
    # Execution
    # =========================================================================

    def step(self) -> bool:
        """Execute exactly one instruction.

        Returns:
            True to continue, False when the NONE opcode was reached

        Raises:
            AlreadyFaulted: If the fault latch is set
            CPUError: Whatever fault the instruction raised; the latch is set
        """
        self.last_instruction = None
        if self._state.fault:
            raise AlreadyFaulted()

        try:
            ip = self._state.ip
            if ip < 0 or ip >= len(self.memory):
                raise AddressViolation(ip, "Instruction pointer is outside of memory")

            # Fetches go through the bus; last_access is published on commit
            bus = MemoryTransaction(self.memory)
            decoded = self.decoder.decode(bus, ip)
            self.last_instruction = decoded
            if decoded.opcode == Opcode.NONE:
                bus.commit()
                return False

            new_state = self.registry.execute(self._state, decoded, bus)
            bus.commit()
        except Exception as e:
            self._state = self._state.set_fault()
            logger.warning("CPU fault at IP=%d: %s", self._state.ip, e)
            raise

        logger.debug("%3d: %-20s %s", ip, decoded, new_state)
        self._state = new_state
        return True

    def reset(self) -> None:
        """Restore registers, SP, IP, flags and fault latch. Memory is untouched."""
        self._state = create_initial_state()
        self.last_instruction = None
