"""Memory: fixed 256-byte store for the asm8 CPU.

Memory is the leaf component. It bounds-checks every address but stores
values verbatim; range handling of values is the CPU's job.

MemoryTransaction wraps a Memory for the duration of one instruction so the
CPU can buffer writes and only commit them once the instruction has fully
succeeded.
"""

from typing import Dict, Iterable, List

from .errors import AddressViolation


MEMORY_SIZE = 256


class Memory:
    """Byte-addressable memory with a last-access marker.

    Attributes:
        data: Memory cells (list of ints, MEMORY_SIZE long)
        last_access: Last successfully loaded or stored address, -1 after reset
    """

    def __init__(self, size: int = MEMORY_SIZE):
        self.data: List[int] = [0] * size
        self.last_access = -1

    def __len__(self) -> int:
        return len(self.data)

    def check_address(self, address: int) -> None:
        """Raise AddressViolation unless address is inside memory."""
        if address < 0 or address >= len(self.data):
            raise AddressViolation(address)

    def load(self, address: int) -> int:
        """Read one cell.

        Args:
            address: Cell address

        Returns:
            Stored value

        Raises:
            AddressViolation: If address is outside memory
        """
        self.check_address(address)
        self.last_access = address
        return self.data[address]

    def store(self, address: int, value: int) -> None:
        """Write one cell. The value is not masked to a byte."""
        self.check_address(address)
        self.last_access = address
        self.data[address] = value

    def reset(self) -> None:
        """Zero-fill memory and forget the last access."""
        self.last_access = -1
        for i in range(len(self.data)):
            self.data[i] = 0

    def load_program(self, code: Iterable[int], start: int = 0) -> int:
        """Install a program image.

        Args:
            code: Bytes to copy
            start: First address to write

        Returns:
            Number of bytes written

        Raises:
            AddressViolation: If the image does not fit
        """
        code = list(code)
        end = start + len(code)
        if start < 0 or end > len(self.data):
            raise AddressViolation(
                end - 1,
                f"Binary code does not fit into the memory. "
                f"Max {len(self.data)} bytes are allowed",
            )
        self.data[start:end] = code
        return len(code)

    def dump(self) -> List[int]:
        """Copy of all cells."""
        return list(self.data)


class MemoryTransaction:
    """Buffers the accesses of a single instruction.

    Loads see pending writes; every access is bounds-checked immediately.
    Writes and the last-access marker only reach the underlying memory on
    commit(), so a discarded transaction leaves memory exactly as it was.

    Attributes:
        memory: Memory being wrapped
        last_access: Last address touched through this transaction
    """

    def __init__(self, memory: Memory):
        self.memory = memory
        self.last_access = memory.last_access
        self._pending: Dict[int, int] = {}
        self._order: List[int] = []

    def load(self, address: int) -> int:
        self.memory.check_address(address)
        self.last_access = address
        return self._pending.get(address, self.memory.data[address])

    def store(self, address: int, value: int) -> None:
        self.memory.check_address(address)
        self.last_access = address
        if address not in self._pending:
            self._order.append(address)
        self._pending[address] = value

    @property
    def pending(self) -> Dict[int, int]:
        return dict(self._pending)

    def commit(self) -> None:
        for address in self._order:
            self.memory.store(address, self._pending[address])
        self.memory.last_access = self.last_access
        self._pending.clear()
        self._order.clear()
