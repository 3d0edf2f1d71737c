"""Opcode table for the asm8 instruction set.

The numeric values are the contract between the CPU and the assembler /
disassembler: programs assembled elsewhere run unchanged as long as both
sides use this table.

Each opcode has an operand signature, the sequence of operand kinds that
follow the opcode byte in memory:

    REG          narrow register selector (A-D)
    WIDE_REG     register selector that also accepts SP
    REG_ADDRESS  register-indirect reference (base selector + 5-bit offset)
    ADDRESS      absolute memory address
    NUMBER       immediate value
"""

from enum import Enum, IntEnum
from typing import Dict, Tuple


class Opcode(IntEnum):
    NONE = 0

    MOV_REG_TO_REG = 1
    MOV_ADDRESS_TO_REG = 2
    MOV_REGADDRESS_TO_REG = 3
    MOV_REG_TO_ADDRESS = 4
    MOV_REG_TO_REGADDRESS = 5
    MOV_NUMBER_TO_REG = 6
    MOV_NUMBER_TO_ADDRESS = 7
    MOV_NUMBER_TO_REGADDRESS = 8

    ADD_REG_TO_REG = 10
    ADD_REGADDRESS_TO_REG = 11
    ADD_ADDRESS_TO_REG = 12
    ADD_NUMBER_TO_REG = 13

    SUB_REG_FROM_REG = 14
    SUB_REGADDRESS_FROM_REG = 15
    SUB_ADDRESS_FROM_REG = 16
    SUB_NUMBER_FROM_REG = 17

    INC_REG = 18
    DEC_REG = 19

    CMP_REG_WITH_REG = 20
    CMP_REGADDRESS_WITH_REG = 21
    CMP_ADDRESS_WITH_REG = 22
    CMP_NUMBER_WITH_REG = 23

    JMP_REGADDRESS = 30
    JMP_ADDRESS = 31
    JC_REGADDRESS = 32
    JC_ADDRESS = 33
    JNC_REGADDRESS = 34
    JNC_ADDRESS = 35
    JZ_REGADDRESS = 36
    JZ_ADDRESS = 37
    JNZ_REGADDRESS = 38
    JNZ_ADDRESS = 39
    JA_REGADDRESS = 40
    JA_ADDRESS = 41
    JNA_REGADDRESS = 42
    JNA_ADDRESS = 43

    PUSH_REG = 50
    PUSH_REGADDRESS = 51
    PUSH_ADDRESS = 52
    PUSH_NUMBER = 53
    POP_REG = 54

    CALL_REGADDRESS = 55
    CALL_ADDRESS = 56
    RET = 57

    MUL_REG = 60
    MUL_REGADDRESS = 61
    MUL_ADDRESS = 62
    MUL_NUMBER = 63

    DIV_REG = 64
    DIV_REGADDRESS = 65
    DIV_ADDRESS = 66
    DIV_NUMBER = 67

    AND_REG_WITH_REG = 70
    AND_REGADDRESS_WITH_REG = 71
    AND_ADDRESS_WITH_REG = 72
    AND_NUMBER_WITH_REG = 73

    OR_REG_WITH_REG = 74
    OR_REGADDRESS_WITH_REG = 75
    OR_ADDRESS_WITH_REG = 76
    OR_NUMBER_WITH_REG = 77

    XOR_REG_WITH_REG = 78
    XOR_REGADDRESS_WITH_REG = 79
    XOR_ADDRESS_WITH_REG = 80
    XOR_NUMBER_WITH_REG = 81

    NOT_REG = 82

    SHL_REG_WITH_REG = 90
    SHL_REGADDRESS_WITH_REG = 91
    SHL_ADDRESS_WITH_REG = 92
    SHL_NUMBER_WITH_REG = 93

    SHR_REG_WITH_REG = 94
    SHR_REGADDRESS_WITH_REG = 95
    SHR_ADDRESS_WITH_REG = 96
    SHR_NUMBER_WITH_REG = 97


class Operand(Enum):
    REG = "reg"
    WIDE_REG = "wide_reg"
    REG_ADDRESS = "reg_address"
    ADDRESS = "address"
    NUMBER = "number"


REG = Operand.REG
WIDE_REG = Operand.WIDE_REG
REG_ADDRESS = Operand.REG_ADDRESS
ADDRESS = Operand.ADDRESS
NUMBER = Operand.NUMBER

# Source operand kinds in opcode order: REG, REGADDRESS, ADDRESS, NUMBER
_SOURCES = (REG, REG_ADDRESS, ADDRESS, NUMBER)
_WIDE_SOURCES = (WIDE_REG, REG_ADDRESS, ADDRESS, NUMBER)


def _family(first: Opcode, prefix: Tuple[Operand, ...], sources) -> Dict[Opcode, Tuple[Operand, ...]]:
    return {Opcode(first + i): prefix + (source,) for i, source in enumerate(sources)}


OPERANDS: Dict[Opcode, Tuple[Operand, ...]] = {
    Opcode.NONE: (),
    Opcode.MOV_REG_TO_REG: (WIDE_REG, WIDE_REG),
    Opcode.MOV_ADDRESS_TO_REG: (WIDE_REG, ADDRESS),
    Opcode.MOV_REGADDRESS_TO_REG: (WIDE_REG, REG_ADDRESS),
    Opcode.MOV_REG_TO_ADDRESS: (ADDRESS, WIDE_REG),
    Opcode.MOV_REG_TO_REGADDRESS: (REG_ADDRESS, WIDE_REG),
    Opcode.MOV_NUMBER_TO_REG: (WIDE_REG, NUMBER),
    Opcode.MOV_NUMBER_TO_ADDRESS: (ADDRESS, NUMBER),
    Opcode.MOV_NUMBER_TO_REGADDRESS: (REG_ADDRESS, NUMBER),
    **_family(Opcode.ADD_REG_TO_REG, (WIDE_REG,), _WIDE_SOURCES),
    **_family(Opcode.SUB_REG_FROM_REG, (WIDE_REG,), _WIDE_SOURCES),
    Opcode.INC_REG: (WIDE_REG,),
    Opcode.DEC_REG: (WIDE_REG,),
    **_family(Opcode.CMP_REG_WITH_REG, (WIDE_REG,), _WIDE_SOURCES),
    **{Opcode(op): (REG,) for op in range(Opcode.JMP_REGADDRESS, Opcode.JNA_ADDRESS + 1, 2)},
    **{Opcode(op): (ADDRESS,) for op in range(Opcode.JMP_ADDRESS, Opcode.JNA_ADDRESS + 1, 2)},
    **_family(Opcode.PUSH_REG, (), _SOURCES),
    Opcode.POP_REG: (REG,),
    Opcode.CALL_REGADDRESS: (REG,),
    Opcode.CALL_ADDRESS: (ADDRESS,),
    Opcode.RET: (),
    **_family(Opcode.MUL_REG, (), _SOURCES),
    **_family(Opcode.DIV_REG, (), _SOURCES),
    **_family(Opcode.AND_REG_WITH_REG, (REG,), _SOURCES),
    **_family(Opcode.OR_REG_WITH_REG, (REG,), _SOURCES),
    **_family(Opcode.XOR_REG_WITH_REG, (REG,), _SOURCES),
    Opcode.NOT_REG: (REG,),
    **_family(Opcode.SHL_REG_WITH_REG, (REG,), _SOURCES),
    **_family(Opcode.SHR_REG_WITH_REG, (REG,), _SOURCES),
}


# Mnemonic families, used by the assembler and the disassembler
MNEMONICS: Dict[Opcode, str] = {
    Opcode.NONE: "HLT",
    Opcode.RET: "RET",
    Opcode.INC_REG: "INC",
    Opcode.DEC_REG: "DEC",
    Opcode.POP_REG: "POP",
    Opcode.NOT_REG: "NOT",
}
for _opcode in Opcode:
    if _opcode not in MNEMONICS:
        MNEMONICS[_opcode] = _opcode.name.split("_")[0]


JUMPS = frozenset(
    op for op in Opcode
    if Opcode.JMP_REGADDRESS <= op <= Opcode.JNA_ADDRESS
    or op in (Opcode.CALL_REGADDRESS, Opcode.CALL_ADDRESS, Opcode.RET)
)
