"""Assembler: turns asm8 assembly text into a program image.

Syntax, one statement per line:

    label:  MNEMONIC operand, operand   ; comment

Operands:
    A, B, C, D, SP        registers (SP only where the wide context allows it)
    42, 0x2A, 0o52, 0b101010, 101010b, 42d, 'c'
                          numbers and character literals
    name                  label (resolves to its address)
    [42], [name]          memory at an absolute address
    [C], [C+2], [SP-1]    register-indirect, offset in [-16, 15]

Directives:
    DB 42                 emit one byte
    DB "text"             emit the characters of a string
    HLT                   emit the NONE opcode

The encoding of every instruction is looked up in the shared opcode table,
so the assembler and the CPU cannot disagree on numeric values.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from .decode import RegisterAddress
from .memory import MEMORY_SIZE
from .opcodes import JUMPS, MNEMONICS, OPERANDS, Opcode, Operand
from .state import WideRegister


OPERAND_PATTERN = r"""\[[^\]]*\]|"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)'|[.\w]+"""

LINE_PATTERN = re.compile(
    r"^\s*(?:(?P<label>[.A-Za-z]\w*)\s*:)?"
    r"\s*(?:(?P<mnemonic>[A-Za-z]{2,4})"
    r"(?:\s+(?P<op1>" + OPERAND_PATTERN + r")"
    r"(?:\s*,\s*(?P<op2>" + OPERAND_PATTERN + r"))?)?)?"
    r"\s*(?:;.*)?$"
)

REGISTER_ADDRESS_PATTERN = re.compile(r"^(A|B|C|D|SP)\s*(?:([+-])\s*(\d+))?$", re.IGNORECASE)

ALIASES = {
    "JB": "JC",
    "JNAE": "JC",
    "JNB": "JNC",
    "JAE": "JNC",
    "JE": "JZ",
    "JNE": "JNZ",
    "JNBE": "JA",
    "JBE": "JNA",
    "SAL": "SHL",
    "SAR": "SHR",
}

REGISTER_NAMES = {reg.name for reg in WideRegister}


class AssemblerError(ValueError):
    """Assembly failure.

    Attributes:
        line: 1-based source line, or None for whole-program errors
        error: Message without the line prefix
    """

    def __init__(self, line: Optional[int], error: str):
        self.line = line
        self.error = error
        super().__init__(f"{line} | {error}" if line is not None else error)


@dataclass
class Assembly:
    """Assembled program.

    Attributes:
        code: Program bytes, starting at address 0
        mapping: Instruction address -> 0-based source line index
        labels: Label name -> address
    """
    code: List[int] = field(default_factory=list)
    mapping: Dict[int, int] = field(default_factory=dict)
    labels: Dict[str, int] = field(default_factory=dict)


# Parsed operands: (kind, value) with kind one of
# "register", "regaddress", "address", "number", "string"
ParsedOperand = Tuple[str, Union[int, str, WideRegister, RegisterAddress]]


def parse_number(text: str) -> int:
    """Parse a numeric literal.

    Raises:
        ValueError: If text is not a number
    """
    lowered = text.lower()
    # h first: "1bh" and "0dh" are hex, not binary or decimal
    if lowered.endswith("h"):
        return int(lowered[:-1], 16)
    if lowered.startswith("0x"):
        return int(lowered[2:], 16)
    if lowered.startswith("0o"):
        return int(lowered[2:], 8)
    if lowered.startswith("0b"):
        return int(lowered[2:], 2)
    if lowered.endswith("o"):
        return int(lowered[:-1], 8)
    if lowered.endswith("b"):
        return int(lowered[:-1], 2)
    if lowered.endswith("d"):
        return int(lowered[:-1], 10)
    if re.fullmatch(r"[0-9]+", lowered):
        return int(lowered, 10)
    raise ValueError(f"Invalid number format: {text}")


def _unescape(text: str) -> str:
    return re.sub(r"\\(.)", r"\1", text)


class Assembler:
    """Two-pass assembler: emit bytes with label placeholders, then patch."""

    def __init__(self, memory_size: int = MEMORY_SIZE):
        self.memory_size = memory_size

    def assemble(self, source: str) -> Assembly:
        """Assemble source text.

        Args:
            source: Assembly source code

        Returns:
            Assembly with code, line mapping and labels

        Raises:
            AssemblerError: On any syntax or semantic error
        """
        assembly = Assembly()
        # Items are ints or (label, line) placeholders
        code: List[Union[int, Tuple[str, int]]] = []

        for index, line in enumerate(source.split("\n")):
            line_no = index + 1
            match = LINE_PATTERN.match(line)
            if match is None:
                raise AssemblerError(line_no, "Syntax error")

            label = match.group("label")
            if label is not None:
                self._define_label(assembly.labels, label, len(code), line_no)

            mnemonic = match.group("mnemonic")
            if mnemonic is None:
                continue

            mnemonic = ALIASES.get(mnemonic.upper(), mnemonic.upper())
            operands = [
                self._parse_operand(op, line_no)
                for op in (match.group("op1"), match.group("op2"))
                if op is not None
            ]

            if mnemonic == "DB":
                code.extend(self._encode_db(operands, line_no))
                continue

            assembly.mapping[len(code)] = index
            code.extend(self._encode(mnemonic, operands, line_no))

        if len(code) > self.memory_size:
            raise AssemblerError(
                None,
                f"Binary code does not fit into the memory. Max {self.memory_size} bytes are allowed",
            )

        assembly.code = [self._resolve(item, assembly.labels) for item in code]
        return assembly

    # =========================================================================
    # Labels
    # =========================================================================

    def _define_label(self, labels: Dict[str, int], label: str, address: int, line_no: int) -> None:
        if label.upper() in REGISTER_NAMES:
            raise AssemblerError(line_no, f"Label contains keyword: {label}")
        if label in labels:
            raise AssemblerError(line_no, f"Duplicate label: {label}")
        labels[label] = address

    def _resolve(self, item: Union[int, Tuple[str, int]], labels: Dict[str, int]) -> int:
        if isinstance(item, int):
            return item
        label, line_no = item
        if label not in labels:
            raise AssemblerError(line_no, f"Undefined label: {label}")
        return labels[label]

    # =========================================================================
    # Operands
    # =========================================================================

    def _check_byte(self, value: int, text: str, line_no: int) -> int:
        if not 0 <= value <= 255:
            raise AssemblerError(line_no, f"{text} must have a value between 0-255")
        return value

    def _parse_value(self, text: str, line_no: int) -> Union[int, str]:
        """Number, character literal or label name."""
        if text.startswith("'"):
            return self._check_byte(ord(_unescape(text[1:-1])), text, line_no)
        if text[0].isdigit():
            try:
                value = parse_number(text)
            except ValueError as e:
                raise AssemblerError(line_no, str(e)) from None
            return self._check_byte(value, text, line_no)
        return text

    def _parse_operand(self, text: str, line_no: int) -> ParsedOperand:
        if text.startswith('"'):
            return ("string", _unescape(text[1:-1]))

        if text.startswith("["):
            inner = text[1:-1].strip()
            match = REGISTER_ADDRESS_PATTERN.match(inner)
            if match:
                base = WideRegister[match.group(1).upper()]
                offset = int(match.group(3) or 0)
                if match.group(2) == "-":
                    offset = -offset
                if not -16 <= offset <= 15:
                    raise AssemblerError(line_no, "offset must be a value between -16...+15")
                return ("regaddress", RegisterAddress(base, offset))
            if not inner:
                raise AssemblerError(line_no, "Empty memory reference")
            return ("address", self._parse_value(inner, line_no))

        if text.upper() in REGISTER_NAMES:
            return ("register", WideRegister[text.upper()])

        return ("number", self._parse_value(text, line_no))

    def _matches(self, kind: Operand, operand: ParsedOperand, jump: bool) -> bool:
        operand_type, value = operand
        if kind is Operand.REG:
            return operand_type == "register" and value is not WideRegister.SP
        if kind is Operand.WIDE_REG:
            return operand_type == "register"
        if kind is Operand.REG_ADDRESS:
            return operand_type == "regaddress"
        if kind is Operand.ADDRESS:
            return operand_type == ("number" if jump else "address")
        return operand_type == "number"

    # =========================================================================
    # Encoding
    # =========================================================================

    def _encode_db(self, operands: List[ParsedOperand], line_no: int) -> List[Union[int, Tuple[str, int]]]:
        if len(operands) != 1:
            raise AssemblerError(line_no, "DB: expects 1 parameter")
        operand_type, value = operands[0]
        if operand_type == "string":
            return [self._check_byte(ord(char), repr(char), line_no) for char in value]
        if operand_type == "number":
            return [value if isinstance(value, int) else (value, line_no)]
        raise AssemblerError(line_no, "DB does not support this operand")

    def _encode(self, mnemonic: str, operands: List[ParsedOperand],
                line_no: int) -> List[Union[int, Tuple[str, int]]]:
        candidates = [op for op in Opcode if MNEMONICS[op] == mnemonic]
        if not candidates:
            raise AssemblerError(line_no, f"Invalid instruction: {mnemonic}")

        arity = len(OPERANDS[candidates[0]])
        if len(operands) != arity:
            raise AssemblerError(line_no, f"{mnemonic}: expects {arity} parameter(s)")

        for opcode in candidates:
            jump = opcode in JUMPS
            signature = OPERANDS[opcode]
            if all(self._matches(kind, op, jump) for kind, op in zip(signature, operands)):
                return [int(opcode)] + [self._operand_byte(op, line_no) for op in operands]

        if any(op == ("register", WideRegister.SP) for op in operands):
            raise AssemblerError(line_no, f"{mnemonic} does not support the SP register")
        raise AssemblerError(line_no, f"{mnemonic} does not support this operands")

    def _operand_byte(self, operand: ParsedOperand, line_no: int) -> Union[int, Tuple[str, int]]:
        operand_type, value = operand
        if operand_type == "register":
            return int(value)
        if operand_type == "regaddress":
            return value.encode()
        if isinstance(value, str):
            return (value, line_no)
        return value


def assemble(source: str) -> Assembly:
    """Assemble source text with a default Assembler."""
    return Assembler().assemble(source)
