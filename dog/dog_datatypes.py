"""
Defines the core data types for the dog runtime.

This module provides the runtime `Value`, the AST node classes produced by
the front end and consumed by the evaluator, and the error taxonomy.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from dog.dog_template import Template


# =================================================================
# Errors
# =================================================================

class DogError(Exception):
    """Base class for every error the interpreter reports."""
    # Source location ({'line', 'col', ...}) of the statement that failed, when known.
    loc = None


class ExecutionError(DogError):
    """An unrecoverable error raised while executing a program."""
    pass


class UndeclaredVariable(ExecutionError):
    def __init__(self, name: str):
        super().__init__(f"Use of undeclared variable `{name}`")
        self.name = name


class UnknownFunction(ExecutionError):
    def __init__(self, name: str):
        super().__init__(f"Use of undefined function `{name}`")
        self.name = name


class NoMatchingOverload(ExecutionError):
    def __init__(self, name: str, count: int):
        super().__init__(f"no overload for function `{name}` takes `{count}` arguments")
        self.name = name
        self.count = count


class CallDepthExceeded(ExecutionError):
    def __init__(self, limit: int):
        super().__init__(f"maximum call depth of {limit} exceeded")
        self.limit = limit


class InternalError(ExecutionError):
    def __init__(self, detail: str = ""):
        message = "Internal runtime error"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
        self.detail = detail


class OverloadRejected(DogError):
    """A script function tried to shadow a host function."""
    def __init__(self, name: str):
        super().__init__(f"Can not overload built-in function `{name}`")
        self.name = name


class DogSyntaxError(DogError):
    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.col = col


# =================================================================
# Runtime Value
# =================================================================

_NOT_PARSED = object()
_INT_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(
    r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|[+-]?(?:inf|infinity|nan)",
    re.IGNORECASE,
)


class Pieces:
    """
    The slices produced by `Value.split`.

    Iteration is lazy and can be restarted: every call to `iter()` walks the
    text from the beginning again.
    """

    def __init__(self, text: str, separator: Optional[str] = None):
        self.text = text
        self.separator = separator

    def __iter__(self) -> Iterator[str]:
        text = self.text
        sep = self.separator
        if sep is None:
            for m in re.finditer(r"\S+", text):
                yield m.group(0)
        elif sep == "":
            yield from text
        else:
            start = 0
            while True:
                idx = text.find(sep, start)
                if idx < 0:
                    yield text[start:]
                    return
                yield text[start:idx]
                start = idx + len(sep)

    def __repr__(self):
        return f"Pieces({self.text!r}, {self.separator!r})"


class Value:
    """
    Text plus an integer status; status 0 means truthy.

    Numeric views of the text are parsed on first demand and cached until the
    text changes. Every write to `text` goes through the property setter, so
    no mutation path can leave a stale cache behind.
    """

    __slots__ = ("_text", "status", "_float", "_int")

    def __init__(self, text: str = "", status: int = 0):
        self._text = text
        self.status = status
        self._float = _NOT_PARSED
        self._int = _NOT_PARSED

    @classmethod
    def new_truthy(cls, text: str = "") -> "Value":
        return cls(text, 0)

    @classmethod
    def new_falsy(cls, text: str = "") -> "Value":
        return cls(text, 1)

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, new_text: str):
        self._text = new_text
        self._discard()

    def _discard(self):
        self._float = _NOT_PARSED
        self._int = _NOT_PARSED

    def is_truthy(self) -> bool:
        return self.status == 0

    def append(self, other: "Value"):
        """Concatenates `other`'s text and adopts its status."""
        self.text = self._text + other._text
        self.status = other.status

    def append_text(self, text: str):
        """Concatenates literal text, keeping the current status."""
        self.text = self._text + text

    def replace(self, text: str):
        self.text = text

    def copy(self) -> "Value":
        # str is immutable, so the copy shares its backing storage.
        return Value(self._text, self.status)

    # --- Numeric views ---

    def as_float(self) -> Optional[float]:
        if self._float is _NOT_PARSED:
            if _FLOAT_RE.fullmatch(self._text):
                self._float = float(self._text)
            else:
                self._float = None
        return self._float

    def as_int(self) -> Optional[int]:
        if self._int is _NOT_PARSED:
            if _INT_RE.fullmatch(self._text):
                self._int = int(self._text)
            else:
                self._int = None
        return self._int

    def split(self, separator: Optional["Value"] = None) -> Pieces:
        """
        Splits the text into pieces.

        No separator splits on runs of whitespace. An empty separator yields one
        piece per character. Anything else splits on literal matches.
        """
        return Pieces(self._text, None if separator is None else separator.text)

    # --- Interop form ---

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self._text, "status": self.status}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Value":
        return cls(str(data.get("text", "")), int(data.get("status", 0)))

    def __eq__(self, other):
        if isinstance(other, Value):
            return self._text == other._text and self.status == other.status
        return NotImplemented

    __hash__ = None

    def __repr__(self):
        return f"Value({self._text!r}, {self.status})"


def join_values(values: List[Value], separator: str = " ") -> Value:
    """Joins texts with `separator`; the status is the last value's (truthy if empty)."""
    status = values[-1].status if values else 0
    return Value(separator.join(v.text for v in values), status)


def format_number(number: float) -> str:
    """Renders a float the way scripts expect: integral values have no fraction."""
    if number != number:
        return "NaN"
    if number in (float("inf"), float("-inf")):
        return "inf" if number > 0 else "-inf"
    if number.is_integer():
        return str(int(number))
    return repr(number)


# =================================================================
# AST
# =================================================================

@dataclass
class FormalParameter:
    name: str
    is_variadic: bool = False


@dataclass
class Block:
    executions: List["Execution"] = field(default_factory=list)


class ControlStatement:
    """Base class for statements whose result is suppressed at statement level."""
    pass


class OpenStatement:
    """Base class for statements whose result is concatenated into the block."""
    pass


# A value slot of the AST: a string literal, a block, or a control statement.
ValueNode = Union[Template, Block, ControlStatement]


@dataclass
class ForStatement(ControlStatement):
    variable: str
    list: ValueNode
    body: ValueNode
    separator: Optional[ValueNode] = None


@dataclass
class IfStatement(ControlStatement):
    condition: ValueNode
    body: ValueNode


@dataclass
class IfElseStatement(ControlStatement):
    condition: ValueNode
    true_body: ValueNode
    false_body: ValueNode


@dataclass
class WhileStatement(ControlStatement):
    condition: ValueNode
    body: ValueNode


@dataclass
class SetStatement(OpenStatement):
    variable: str
    value: ValueNode


@dataclass
class ReturnStatement(OpenStatement):
    value: Optional[ValueNode] = None


@dataclass
class ClearStatement(OpenStatement):
    value: Optional[ValueNode] = None


@dataclass
class CallStatement(OpenStatement):
    name: str
    arguments: List[ValueNode] = field(default_factory=list)


Execution = Union[Block, ControlStatement, OpenStatement]


@dataclass
class Function:
    name: str
    formal_parameters: List[FormalParameter]
    body: Block
    source_text: Optional[str] = None


@dataclass
class Program:
    functions: List[Function] = field(default_factory=list)
    executions: List[Execution] = field(default_factory=list)
