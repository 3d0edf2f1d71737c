"""Tests for the CPU core: instruction semantics, faults and atomicity."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from asm8_cpu.cpu import CPU
from asm8_cpu.errors import (
    AddressViolation,
    AlreadyFaulted,
    DivisionByZero,
    InvalidAddress,
    InvalidOpcode,
    InvalidRegister,
    StackOverflow,
    StackUnderflow,
)
from asm8_cpu.memory import Memory
from asm8_cpu.opcodes import Opcode as Op
from asm8_cpu.registry import InstructionRegistry, get_registry, shift_left, shift_right


def make_cpu(*code):
    memory = Memory()
    memory.load_program([int(b) for b in code])
    return CPU(memory)


def run_steps(cpu, count):
    for _ in range(count):
        assert cpu.step() is True


class TestReset:
    """Test initial and reset values."""

    def test_initial_state(self):
        """Registers zero, SP 231, IP 0, flags clear."""
        cpu = make_cpu()
        assert cpu.gpr == (0, 0, 0, 0)
        assert cpu.sp == 231
        assert cpu.ip == 0
        assert (cpu.zero, cpu.carry, cpu.fault) == (False, False, False)

    def test_reset_keeps_memory(self):
        """reset() restores registers but leaves memory alone."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 5, Op.MOV_REG_TO_ADDRESS, 100, 0)
        run_steps(cpu, 2)
        cpu.reset()
        assert cpu.gpr == (0, 0, 0, 0)
        assert cpu.ip == 0
        assert cpu.memory.data[100] == 5
        assert cpu.last_instruction is None


class TestStep:
    """Test the fetch-decode-execute cycle."""

    def test_mov_then_halt(self):
        """MOV A, 5 advances IP by 3; the NONE opcode stops."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 5)
        assert cpu.step() is True
        assert cpu.gpr[0] == 5
        assert cpu.ip == 3
        assert cpu.step() is False
        assert cpu.ip == 3
        assert cpu.fault is False

    def test_last_access(self):
        """The last fetched or stored address is recorded."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 9, Op.MOV_REG_TO_ADDRESS, 100, 0)
        cpu.step()
        assert cpu.memory.last_access == 2
        cpu.step()
        assert cpu.memory.last_access == 100
        assert cpu.memory.data[100] == 9

    def test_failed_step_keeps_last_access(self):
        """A faulting instruction does not move last_access."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 1, Op.POP_REG, 0)
        cpu.step()
        assert cpu.memory.last_access == 2
        with pytest.raises(StackUnderflow):
            cpu.step()
        assert cpu.memory.last_access == 2

    def test_failed_decode_keeps_last_access(self):
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 5, 1)
        with pytest.raises(InvalidRegister):
            cpu.step()
        assert cpu.memory.last_access == -1

    def test_last_instruction_cleared_each_step(self):
        """last_instruction only describes the current step."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 1, 9)
        cpu.step()
        assert cpu.last_instruction.opcode == Op.MOV_NUMBER_TO_REG
        with pytest.raises(InvalidOpcode):
            cpu.step()
        assert cpu.last_instruction is None

    def test_ip_past_memory(self):
        """An IP of 256 is an address violation."""
        cpu = make_cpu(Op.JMP_ADDRESS, 253)
        cpu.memory.data[253:256] = [Op.MOV_NUMBER_TO_REG, 0, 5]
        run_steps(cpu, 2)
        assert cpu.ip == 256
        with pytest.raises(AddressViolation, match="outside of memory"):
            cpu.step()
        assert cpu.fault is True

    def test_truncated_instruction_faults(self):
        """Operand fetch past the end of memory faults without moving IP."""
        cpu = make_cpu(Op.JMP_ADDRESS, 254)
        cpu.memory.data[254:256] = [Op.MOV_NUMBER_TO_REG, 0]
        cpu.step()
        with pytest.raises(AddressViolation):
            cpu.step()
        assert cpu.ip == 254

    def test_invalid_opcode(self):
        """Unassigned opcode bytes fault."""
        cpu = make_cpu(9)
        with pytest.raises(InvalidOpcode):
            cpu.step()
        assert cpu.fault is True


class TestFaultLatch:
    """Test fault latching and recovery."""

    def test_already_faulted(self):
        """After a fault every step is refused until reset."""
        cpu = make_cpu(9)
        with pytest.raises(InvalidOpcode):
            cpu.step()
        with pytest.raises(AlreadyFaulted, match="Reset to continue"):
            cpu.step()
        cpu.reset()
        assert cpu.fault is False

    def test_invalid_register(self):
        """A register selector of 5 faults."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 5, 1)
        with pytest.raises(InvalidRegister):
            cpu.step()
        assert cpu.fault is True

    def test_narrow_context_rejects_sp(self):
        """PUSH only takes A-D."""
        cpu = make_cpu(Op.PUSH_REG, 4)
        with pytest.raises(InvalidRegister):
            cpu.step()


class TestArithmetic:
    """Test ADD, SUB, INC, DEC, MUL, DIV and CMP."""

    def test_add_carry(self):
        """200 + 100 wraps to 44 with carry."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 200, Op.ADD_NUMBER_TO_REG, 0, 100)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 44
        assert cpu.carry is True
        assert cpu.zero is False

    def test_add_to_256(self):
        """A result of exactly 256 is 0 with carry but no zero flag."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 156, Op.ADD_NUMBER_TO_REG, 0, 100)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 0
        assert cpu.carry is True
        assert cpu.zero is False

    def test_add_register_and_memory(self):
        """ADD reads registers, absolute and indirect memory."""
        cpu = make_cpu(
            Op.MOV_NUMBER_TO_REG, 1, 3,
            Op.ADD_REG_TO_REG, 0, 1,         # A = 3
            Op.ADD_ADDRESS_TO_REG, 0, 2,     # A += mem[2] (3)
            Op.ADD_REGADDRESS_TO_REG, 0, 1,  # A += mem[B] (10)
        )
        run_steps(cpu, 4)
        assert cpu.gpr[0] == 16

    def test_sub_to_zero(self):
        """5 - 5 sets the zero flag."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 5, Op.SUB_NUMBER_FROM_REG, 0, 5)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 0
        assert cpu.zero is True
        assert cpu.carry is False

    def test_sub_borrow(self):
        """0 - 1 wraps to 255 with carry."""
        cpu = make_cpu(Op.SUB_NUMBER_FROM_REG, 0, 1)
        cpu.step()
        assert cpu.gpr[0] == 255
        assert cpu.carry is True

    def test_sub_stack_pointer_source(self):
        """SUB accepts SP as its source register."""
        cpu = make_cpu(Op.SUB_REG_FROM_REG, 0, 4)
        cpu.step()
        assert cpu.gpr[0] == 25
        assert cpu.carry is True

    def test_add_to_stack_pointer(self):
        """ADD and SUB on SP validate the new value."""
        cpu = make_cpu(Op.SUB_NUMBER_FROM_REG, 4, 1, Op.ADD_NUMBER_TO_REG, 4, 2)
        cpu.step()
        assert cpu.sp == 230
        with pytest.raises(StackUnderflow):
            cpu.step()
        assert cpu.sp == 230

    def test_inc_dec(self):
        """DEC from 0 borrows; INC from 255 wraps with carry."""
        cpu = make_cpu(Op.DEC_REG, 0, Op.INC_REG, 0)
        cpu.step()
        assert cpu.gpr[0] == 255
        assert cpu.carry is True
        cpu.step()
        assert cpu.gpr[0] == 0
        assert cpu.carry is True
        assert cpu.zero is False

    def test_mul(self):
        """MUL multiplies into A and wraps."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 20, Op.MUL_NUMBER, 13)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 4
        assert cpu.carry is True

    def test_div(self):
        """DIV floors the quotient."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 100, Op.DIV_NUMBER, 7)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 14
        assert cpu.carry is False

    def test_div_by_zero_changes_nothing(self):
        """Division by zero faults and leaves A, flags and IP unchanged."""
        cpu = make_cpu(
            Op.MOV_NUMBER_TO_REG, 0, 200,
            Op.ADD_NUMBER_TO_REG, 0, 100,
            Op.DIV_NUMBER, 0,
        )
        run_steps(cpu, 2)
        with pytest.raises(DivisionByZero, match="Division by 0"):
            cpu.step()
        assert cpu.gpr[0] == 44
        assert cpu.carry is True
        assert cpu.ip == 6
        assert cpu.fault is True

    def test_cmp_sets_flags_only(self):
        """CMP keeps the register value."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 5, Op.CMP_NUMBER_WITH_REG, 0, 5)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 5
        assert cpu.zero is True
        assert cpu.carry is False

    def test_cmp_below(self):
        """CMP with a larger value sets carry."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 3, Op.CMP_NUMBER_WITH_REG, 0, 5)
        run_steps(cpu, 2)
        assert cpu.carry is True
        assert cpu.zero is False


class TestBitwise:
    """Test AND, OR, XOR, NOT, SHL and SHR."""

    def test_and(self):
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 12, Op.AND_NUMBER_WITH_REG, 0, 10)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 8

    def test_or(self):
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 12, Op.OR_NUMBER_WITH_REG, 0, 3)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 15

    def test_xor_self_is_zero(self):
        """XOR A, A clears A and sets zero."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 12, Op.XOR_REG_WITH_REG, 0, 0)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 0
        assert cpu.zero is True

    def test_not_zero(self):
        """NOT 0 is -1, which normalizes to 255 with carry."""
        cpu = make_cpu(Op.NOT_REG, 0)
        cpu.step()
        assert cpu.gpr[0] == 255
        assert cpu.carry is True

    def test_not_255(self):
        """NOT 255 is -256, which normalizes to 256."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 255, Op.NOT_REG, 0)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 256
        assert cpu.carry is True

    def test_shl_overflow(self):
        """1 << 8 wraps to 0 with carry."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 1, Op.SHL_NUMBER_WITH_REG, 0, 8)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 0
        assert cpu.carry is True
        assert cpu.zero is False

    def test_shr(self):
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 128, Op.SHR_NUMBER_WITH_REG, 0, 7)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 1

    def test_shr_to_zero(self):
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 128, Op.SHR_NUMBER_WITH_REG, 0, 8)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 0
        assert cpu.zero is True

    def test_shift_helpers(self):
        """Shift counts wrap at 32; SHR is logical."""
        assert shift_left(1, 32) == 1
        assert shift_left(1, 31) == -(1 << 31)
        assert shift_right(-1, 28) == 15
        assert shift_right(200, 33) == 100


class TestJumps:
    """Test conditional and unconditional jumps."""

    def test_jmp_address(self):
        cpu = make_cpu(Op.JMP_ADDRESS, 10)
        cpu.step()
        assert cpu.ip == 10

    def test_jmp_register(self):
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 7, Op.JMP_REGADDRESS, 0)
        run_steps(cpu, 2)
        assert cpu.ip == 7

    def test_jump_not_taken(self):
        """A failed condition falls through."""
        cpu = make_cpu(Op.JZ_ADDRESS, 50)
        cpu.step()
        assert cpu.ip == 2

    def test_jz_after_cmp(self):
        cpu = make_cpu(
            Op.MOV_NUMBER_TO_REG, 0, 5,
            Op.CMP_NUMBER_WITH_REG, 0, 5,
            Op.JZ_ADDRESS, 50,
        )
        run_steps(cpu, 3)
        assert cpu.ip == 50

    @pytest.mark.parametrize("value,opcode,taken", [
        (10, Op.JA_ADDRESS, True),
        (10, Op.JNA_ADDRESS, False),
        (3, Op.JA_ADDRESS, False),
        (3, Op.JNA_ADDRESS, True),
        (3, Op.JC_ADDRESS, True),
        (3, Op.JNC_ADDRESS, False),
        (5, Op.JNA_ADDRESS, True),
        (5, Op.JNZ_ADDRESS, False),
    ])
    def test_conditions(self, value, opcode, taken):
        """Conditions after CMP value, 5."""
        cpu = make_cpu(
            Op.MOV_NUMBER_TO_REG, 0, value,
            Op.CMP_NUMBER_WITH_REG, 0, 5,
            opcode, 100,
        )
        run_steps(cpu, 3)
        assert cpu.ip == (100 if taken else 8)

    def test_invalid_target(self):
        """Targets outside memory fault."""
        cpu = make_cpu()
        cpu.memory.data[0:2] = [Op.JMP_ADDRESS, 300]
        with pytest.raises(InvalidAddress, match="IP outside memory: 300"):
            cpu.step()
        assert cpu.ip == 0


class TestStack:
    """Test PUSH, POP, CALL and RET."""

    def test_push_pop(self):
        """A pushed value pops back into another register."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 42, Op.PUSH_REG, 0, Op.POP_REG, 1)
        run_steps(cpu, 2)
        assert cpu.sp == 230
        assert cpu.memory.data[231] == 42
        cpu.step()
        assert cpu.gpr[1] == 42
        assert cpu.sp == 231

    def test_push_number(self):
        cpu = make_cpu(Op.PUSH_NUMBER, 9)
        cpu.step()
        assert cpu.memory.data[231] == 9
        assert cpu.sp == 230

    def test_pop_empty_stack(self):
        """Popping at SP 231 underflows."""
        cpu = make_cpu(Op.POP_REG, 0)
        with pytest.raises(StackUnderflow):
            cpu.step()
        assert cpu.sp == 231

    def test_push_overflow_is_atomic(self):
        """An overflowing PUSH writes nothing."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 4, 0, Op.PUSH_NUMBER, 1)
        cpu.step()
        assert cpu.sp == 0
        with pytest.raises(StackOverflow):
            cpu.step()
        assert cpu.memory.data[0] == Op.MOV_NUMBER_TO_REG
        assert cpu.sp == 0

    def test_call_ret(self):
        """CALL pushes the return address, RET pops it."""
        cpu = make_cpu(Op.CALL_ADDRESS, 5, 0, 0, 0, Op.RET)
        cpu.step()
        assert cpu.ip == 5
        assert cpu.memory.data[231] == 2
        assert cpu.sp == 230
        cpu.step()
        assert cpu.ip == 2
        assert cpu.sp == 231
        assert cpu.step() is False

    def test_call_register(self):
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 6, Op.CALL_REGADDRESS, 0, 0, Op.RET)
        run_steps(cpu, 2)
        assert cpu.ip == 6
        assert cpu.memory.data[231] == 5
        cpu.step()
        assert cpu.ip == 5

    def test_failed_call_is_atomic(self):
        """A CALL to an invalid target leaves the stack untouched."""
        cpu = make_cpu(
            Op.MOV_NUMBER_TO_REG, 0, 255,
            Op.NOT_REG, 0,
            Op.CALL_REGADDRESS, 0,
        )
        run_steps(cpu, 2)
        with pytest.raises(InvalidAddress):
            cpu.step()
        assert cpu.memory.data[231] == 0
        assert cpu.sp == 231
        assert cpu.ip == 5

    def test_mov_sp_validated(self):
        """MOV SP, 232 underflows and leaves SP unchanged."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 4, 232)
        with pytest.raises(StackUnderflow):
            cpu.step()
        assert cpu.sp == 231


class TestAddressing:
    """Test the MOV addressing modes."""

    def test_register_indirect(self):
        """MOV B, [A+5] reads address A + 5."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 10, Op.MOV_REGADDRESS_TO_REG, 1, 40)
        cpu.memory.data[15] = 77
        run_steps(cpu, 2)
        assert cpu.gpr[1] == 77

    def test_negative_offset(self):
        """MOV B, [A-7] with A = 10 reads address 3."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 10, Op.MOV_REGADDRESS_TO_REG, 1, 200)
        run_steps(cpu, 2)
        assert cpu.gpr[1] == Op.MOV_REGADDRESS_TO_REG

    def test_store_through_sp(self):
        """MOV [SP], 99 writes the top of the stack area."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REGADDRESS, 4, 99)
        cpu.step()
        assert cpu.memory.data[231] == 99

    def test_indirect_out_of_bounds(self):
        """Effective addresses past 255 fault."""
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 0, 250, Op.MOV_REGADDRESS_TO_REG, 1, 120)
        cpu.step()
        with pytest.raises(AddressViolation):
            cpu.step()
        assert cpu.gpr[1] == 0

    def test_mov_does_not_touch_flags(self):
        cpu = make_cpu(Op.SUB_NUMBER_FROM_REG, 0, 1, Op.MOV_NUMBER_TO_REG, 0, 0)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 0
        assert cpu.carry is True
        assert cpu.zero is False

    def test_mov_number_to_address(self):
        cpu = make_cpu(Op.MOV_NUMBER_TO_ADDRESS, 100, 33)
        cpu.step()
        assert cpu.memory.data[100] == 33

    def test_mov_address_to_sp(self):
        """MOV SP, [addr] goes through SP validation."""
        cpu = make_cpu(Op.MOV_ADDRESS_TO_REG, 4, 3, 200)
        cpu.step()
        assert cpu.sp == 200


class TestSourceVariants:
    """Test every source addressing variant of each instruction family.

    The prelude sets A = 12, B = 3, C = 100 and mem[100] = 3, so each
    variant below reads the source value 3:

        REG          B
        REGADDRESS   [C]
        ADDRESS      [100]
        NUMBER       3
    """

    PRELUDE = [
        Op.MOV_NUMBER_TO_REG, 0, 12,
        Op.MOV_NUMBER_TO_REG, 1, 3,
        Op.MOV_NUMBER_TO_REG, 2, 100,
        Op.MOV_NUMBER_TO_ADDRESS, 100, 3,
    ]
    SOURCES = [1, 2, 100, 3]

    def run_variant(self, first, variant, with_dest):
        operands = [0] if with_dest else []
        code = self.PRELUDE + [first + variant] + operands + [self.SOURCES[variant]]
        cpu = make_cpu(*code)
        run_steps(cpu, 5)
        return cpu

    @pytest.mark.parametrize("variant", [0, 1, 2, 3])
    @pytest.mark.parametrize("first,expected,zero", [
        (Op.ADD_REG_TO_REG, 15, False),
        (Op.SUB_REG_FROM_REG, 9, False),
        (Op.AND_REG_WITH_REG, 0, True),
        (Op.OR_REG_WITH_REG, 15, False),
        (Op.XOR_REG_WITH_REG, 15, False),
        (Op.SHL_REG_WITH_REG, 96, False),
        (Op.SHR_REG_WITH_REG, 1, False),
    ])
    def test_binary_families(self, first, expected, zero, variant):
        """A = 12 op 3 for every source variant."""
        cpu = self.run_variant(first, variant, with_dest=True)
        assert cpu.gpr[0] == expected
        assert cpu.zero is zero
        assert cpu.carry is False

    @pytest.mark.parametrize("variant", [0, 1, 2, 3])
    def test_cmp(self, variant):
        """CMP A, 3 only updates the flags."""
        cpu = self.run_variant(Op.CMP_REG_WITH_REG, variant, with_dest=True)
        assert cpu.gpr[0] == 12
        assert cpu.zero is False
        assert cpu.carry is False

    @pytest.mark.parametrize("variant", [0, 1, 2, 3])
    @pytest.mark.parametrize("first,expected", [
        (Op.MUL_REG, 36),
        (Op.DIV_REG, 4),
    ])
    def test_mul_div(self, first, expected, variant):
        cpu = self.run_variant(first, variant, with_dest=False)
        assert cpu.gpr[0] == expected

    @pytest.mark.parametrize("variant", [0, 1, 2, 3])
    def test_push(self, variant):
        cpu = self.run_variant(Op.PUSH_REG, variant, with_dest=False)
        assert cpu.memory.data[231] == 3
        assert cpu.sp == 230

    @pytest.mark.parametrize("opcode,source", [
        (Op.DIV_REG, 1),
        (Op.DIV_REGADDRESS, 2),
        (Op.DIV_ADDRESS, 200),
        (Op.DIV_NUMBER, 0),
    ])
    def test_div_by_zero_any_source(self, opcode, source):
        """A zero divisor faults for every operand kind, leaving A and flags."""
        cpu = make_cpu(
            Op.MOV_NUMBER_TO_REG, 0, 200,
            Op.ADD_NUMBER_TO_REG, 0, 100,   # A = 44, carry
            Op.MOV_NUMBER_TO_REG, 2, 200,   # C = 200, mem[200] = 0
            opcode, source,
        )
        run_steps(cpu, 3)
        with pytest.raises(DivisionByZero):
            cpu.step()
        assert cpu.gpr[0] == 44
        assert cpu.carry is True
        assert cpu.zero is False
        assert cpu.ip == 9

    @pytest.mark.parametrize("opcode,taken", [
        (Op.JMP_REGADDRESS, True),
        (Op.JC_REGADDRESS, True),
        (Op.JNC_REGADDRESS, False),
        (Op.JZ_REGADDRESS, False),
        (Op.JNZ_REGADDRESS, True),
        (Op.JA_REGADDRESS, False),
        (Op.JNA_REGADDRESS, True),
    ])
    def test_register_jumps(self, opcode, taken):
        """Register-target jumps after CMP 3, 5 (carry set, zero clear)."""
        cpu = make_cpu(
            Op.MOV_NUMBER_TO_REG, 0, 3,
            Op.MOV_NUMBER_TO_REG, 3, 50,
            Op.CMP_NUMBER_WITH_REG, 0, 5,
            opcode, 3,
        )
        run_steps(cpu, 4)
        assert cpu.ip == (50 if taken else 11)

    def test_mov_register_to_register(self):
        cpu = make_cpu(Op.MOV_NUMBER_TO_REG, 1, 7, Op.MOV_REG_TO_REG, 0, 1)
        run_steps(cpu, 2)
        assert cpu.gpr[0] == 7

    def test_mov_register_to_indirect(self):
        """MOV [C+1], A writes one past C."""
        cpu = make_cpu(
            Op.MOV_NUMBER_TO_REG, 0, 9,
            Op.MOV_NUMBER_TO_REG, 2, 100,
            Op.MOV_REG_TO_REGADDRESS, 1 * 8 + 2, 0,
        )
        run_steps(cpu, 3)
        assert cpu.memory.data[101] == 9
        assert cpu.memory.data[100] == 0


class TestRegistry:
    """Test the instruction registry."""

    def test_every_opcode_has_handler(self):
        """All opcodes except NONE are registered."""
        registry = get_registry()
        assert registry.get_valid_opcodes() == set(Op) - {Op.NONE}

    def test_registry_is_frozen(self):
        registry = InstructionRegistry()
        assert registry.is_frozen() is True
        with pytest.raises(RuntimeError):
            registry.register(Op.RET, lambda state, operands, bus: state)

    def test_singleton(self):
        assert get_registry() is get_registry()
