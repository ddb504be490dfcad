# dog_runtime.py

import json
import math
import random
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional

import httpx
from koine import Parser

from dog import dog_http
from dog.dog_datatypes import (
    DogError, DogSyntaxError, Program, Value, format_number, join_values,
)
from dog.dog_functions import FunctionRegistry, build_library, host_function
from dog.dog_interpreter import Runtime
from dog.dog_transformer import DogTransformer

GRAMMAR_PATH = Path(__file__).parent / "grammar" / "dog_grammar.yaml"

Token = Dict[str, Any]


def describe_error(e: DogError) -> str:
    """Formats an error as `<Kind>: <message>`."""
    kind = "SyntaxError" if isinstance(e, DogSyntaxError) else type(e).__name__
    return f"{kind}: {e}"


# ===================================================================
# 1. The Standard Library
# ===================================================================

def _numbers(args: List[Value]) -> Optional[List[float]]:
    numbers = []
    for arg in args:
        number = arg.as_float()
        if number is None:
            return None
        numbers.append(number)
    return numbers


def _compare(a: Value, b: Value, op) -> Value:
    x, y = a.as_float(), b.as_float()
    if x is None or y is None:
        return Value.new_falsy()
    return Value("", 0 if op(x, y) else 1)


def _fold(args: List[Value], op) -> Value:
    numbers = _numbers(args)
    if numbers is None:
        return Value.new_falsy()
    result = numbers[0]
    for number in numbers[1:]:
        result = op(result, number)
    return Value.new_truthy(format_number(result))


def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or a != a:
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _pieces(arr: Value, separator: Optional[Value]) -> List[str]:
    return list(arr.split(separator))


def _joiner(separator: Optional[Value]) -> str:
    return " " if separator is None else separator.text


def _flatten_json(value: Any, path: str, out: List[str]):
    if isinstance(value, dict):
        out.append(f"{path} = {{}}\n")
        for key in sorted(value):
            _flatten_json(value[key], f"{path}.{key}", out)
    elif isinstance(value, list):
        out.append(f"{path} = []\n")
        for index, item in enumerate(value):
            _flatten_json(item, f"{path}[{index}]", out)
    else:
        out.append(f"{path} = {json.dumps(value, ensure_ascii=False)}\n")


class StdLib:
    """Contains Python implementations for all dog built-ins."""
    def __init__(self, runner: 'ScriptRunner'):
        self.runner = runner

    def _emit(self, topic: str, message: str):
        self.runner.runtime.side_effects.append({'topics': [topic], 'message': message})

    # --- std ---
    @host_function("%in")
    def _put(self, *values): return Value.new_truthy(join_values(list(values)).text)

    @host_function("%in")
    def _pln(self, *values): return Value.new_truthy(join_values(list(values)).text + "\n")

    @host_function("%in")
    def _print(self, *values):
        self._emit('stdout', join_values(list(values)).text)
        return Value.new_truthy()

    @host_function("%in")
    def _println(self, *values):
        self._emit('stdout', join_values(list(values)).text + "\n")
        return Value.new_truthy()

    @host_function("value")
    @host_function("value", "status")
    def _status(self, value, status=None):
        if status is None:
            return Value(str(value.status), value.status)
        code = status.as_int()
        return Value(value.text, 1 if code is None else code)

    # --- logic ---
    @host_function(name="true")
    def _truthy(self): return Value.new_truthy()

    @host_function(name="false")
    def _falsy(self): return Value.new_falsy()

    @host_function("a", "b")
    def _eq(self, a, b): return _compare(a, b, lambda x, y: x == y)

    @host_function("a", "b")
    def _neq(self, a, b): return _compare(a, b, lambda x, y: x != y)

    @host_function("a", "b")
    def _lt(self, a, b): return _compare(a, b, lambda x, y: x < y)

    @host_function("a", "b")
    def _gt(self, a, b): return _compare(a, b, lambda x, y: x > y)

    @host_function("a", "b")
    def _leq(self, a, b): return _compare(a, b, lambda x, y: x <= y)

    @host_function("a", "b")
    def _geq(self, a, b): return _compare(a, b, lambda x, y: x >= y)

    @host_function("a", "b")
    def _like(self, a, b): return Value("", 0 if a.text == b.text else 1)

    @host_function("a", "b")
    def _and(self, a, b): return Value("", 0 if a.is_truthy() and b.is_truthy() else 1)

    @host_function("a", "b")
    def _or(self, a, b): return Value("", 0 if a.is_truthy() or b.is_truthy() else 1)

    @host_function("a")
    def _not(self, a): return Value("", 1 if a.is_truthy() else 0)

    # --- math ---
    @host_function("first", "%others")
    def _add(self, *args): return _fold(list(args), lambda x, y: x + y)

    @host_function("first", "%others")
    def _sub(self, *args): return _fold(list(args), lambda x, y: x - y)

    @host_function("first", "%others")
    def _mul(self, *args): return _fold(list(args), lambda x, y: x * y)

    @host_function("first", "%others")
    def _div(self, *args): return _fold(list(args), _divide)

    @host_function("first", "%others")
    def _max(self, *args): return _fold(list(args), lambda x, y: y if y > x else x)

    @host_function("first", "%others")
    def _min(self, *args): return _fold(list(args), lambda x, y: y if y < x else x)

    @host_function("x")
    def _floor(self, x):
        number = x.as_float()
        if number is None:
            return Value.new_falsy()
        if math.isinf(number) or number != number:
            return Value.new_truthy(format_number(number))
        return Value.new_truthy(format_number(float(math.floor(number))))

    @host_function("x")
    def _ceil(self, x):
        number = x.as_float()
        if number is None:
            return Value.new_falsy()
        if math.isinf(number) or number != number:
            return Value.new_truthy(format_number(number))
        return Value.new_truthy(format_number(float(math.ceil(number))))

    @host_function("max")
    @host_function("min", "max")
    def _random(self, *args):
        match args:
            case (high,):
                low, high = 0, high.as_int()
            case (low, high):
                low, high = low.as_int(), high.as_int()
        if low is None or high is None:
            return Value.new_falsy()
        if low >= high:
            return Value.new_truthy(str(low))
        return Value.new_truthy(str(random.randrange(low, high)))

    # --- iter ---
    @host_function("max")
    @host_function("min", "max")
    @host_function("min", "max", "step")
    @host_function("min", "max", "step", "sep")
    def _range(self, *args):
        separator = " "
        match args:
            case (high,):
                low, step = Value("0"), Value("1")
            case (low, high):
                step = Value("1")
            case (low, high, step):
                pass
            case (low, high, step, sep):
                separator = sep.text
        low, high, step = low.as_int(), high.as_int(), step.as_int()
        if low is None or high is None or step is None or step <= 0:
            return Value.new_falsy()
        return Value.new_truthy(separator.join(str(i) for i in range(low, high, step)))

    @host_function("arr")
    @host_function("arr", "sep")
    def _len(self, arr, sep=None):
        return Value.new_truthy(str(sum(1 for _ in arr.split(sep))))

    @host_function("arr", "n")
    @host_function("arr", "n", "sep")
    def _first(self, arr, n, sep=None):
        count = n.as_int()
        pieces = _pieces(arr, sep)
        if count is None or count < 0 or count > len(pieces):
            return Value.new_falsy()
        return Value.new_truthy(_joiner(sep).join(pieces[:count]))

    @host_function("arr", "n")
    @host_function("arr", "n", "sep")
    def _last(self, arr, n, sep=None):
        count = n.as_int()
        pieces = _pieces(arr, sep)
        if count is None or count < 0 or count > len(pieces):
            return Value.new_falsy()
        return Value.new_truthy(_joiner(sep).join(pieces[len(pieces) - count:]))

    @host_function("left", "right")
    @host_function("left", "right", "sep")
    def _append(self, left, right, sep=None):
        pieces = _pieces(left, sep) + _pieces(right, sep)
        return Value.new_truthy(_joiner(sep).join(pieces))

    # --- str ---
    @host_function("%args")
    def _upper(self, *args):
        out = join_values(list(args))
        out.replace(out.text.upper())
        return out

    @host_function("%args")
    def _lower(self, *args):
        out = join_values(list(args))
        out.replace(out.text.lower())
        return out

    @host_function("target", "from", "to")
    def _replace(self, target, old, new):
        out = target.copy()
        out.replace(out.text.replace(old.text, new.text))
        return out

    @host_function("target", "pattern")
    def _search(self, target, pattern):
        try:
            regex = re.compile(pattern.text)
        except re.error:
            return Value.new_falsy()
        out = Value.new_truthy()
        for line in target.text.splitlines():
            if regex.search(line):
                out.append_text(line + "\n")
        return out

    @host_function("%args")
    def _is_alpha(self, *args):
        ok = all(c.isalpha() for arg in args for c in arg.text)
        return Value.new_truthy() if ok else Value.new_falsy()

    @host_function("%args")
    def _is_alphanumeric(self, *args):
        ok = all(c.isalnum() for arg in args for c in arg.text)
        return Value.new_truthy() if ok else Value.new_falsy()

    # --- json ---
    @host_function("input")
    def _gron(self, source):
        try:
            parsed = json.loads(source.text)
        except ValueError:
            return Value.new_falsy()
        out: List[str] = []
        _flatten_json(parsed, "json", out)
        return Value.new_truthy("".join(out))

    # --- net ---
    @host_function("url")
    @host_function("url", "timeout")
    def _get(self, url, timeout=None):
        config = {}
        if timeout is not None:
            seconds = timeout.as_float()
            if seconds is None or seconds <= 0:
                return Value.new_falsy()
            config['timeout'] = seconds
        try:
            body = dog_http.http_get(url.text, config=config)
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError, ValueError) as e:
            return Value.new_falsy(str(e))
        return Value.new_truthy(body)

    # --- meta ---
    @host_function("%source")
    def _eval(self, *source, registry: FunctionRegistry):
        """Runs nested source in a fresh runtime that inherits the caller's functions."""
        text = join_values(list(source)).text
        nested = Runtime()
        try:
            nested.register_library(registry)
            program = self.runner.parse(text)
            nested.register_script_library(program.functions)
            return nested.execute(program.executions)
        except DogError as e:
            return Value.new_falsy(describe_error(e))

    @host_function()
    @host_function("name")
    def _functions(self, name=None, *, registry: FunctionRegistry):
        return Value.new_truthy(registry.listing(name=None if name is None else name.text))

    @host_function()
    @host_function("name")
    def _scripts(self, name=None, *, registry: FunctionRegistry):
        listing = registry.listing(include_host=False, name=None if name is None else name.text)
        return Value.new_truthy(listing)

    @host_function()
    @host_function("name")
    def _builtins(self, name=None, *, registry: FunctionRegistry):
        listing = registry.listing(include_script=False, name=None if name is None else name.text)
        return Value.new_truthy(listing)


# ===================================================================
# 2. Script Runner
# ===================================================================

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Optional[Value] = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            if not msg.startswith("Error on line "):
                col_info = f", col {col}" if col is not None else ""
                return f"Error on line {line}{col_info}: {msg}"
        return msg


class ScriptRunner:
    """Parses, transforms, and executes dog code."""

    _parser: Optional[Parser] = None

    def __init__(self, load_stdlib: bool = True, libraries: Iterable[Any] = ()):
        self.transformer = DogTransformer()
        self.runtime = Runtime()
        if load_stdlib:
            self.runtime.register_library(build_library(StdLib(self)))
        for library in libraries:
            if not isinstance(library, FunctionRegistry):
                library = build_library(library)
            self.runtime.register_library(library)

    @property
    def parser(self) -> Parser:
        if ScriptRunner._parser is None:
            ScriptRunner._parser = Parser.from_file(str(GRAMMAR_PATH))
        return ScriptRunner._parser

    def parse(self, source: str) -> Program:
        """Parses and transforms source; raises DogSyntaxError on failure."""
        try:
            parse_out = self.parser.parse(source)
        except Exception as e:
            raise DogSyntaxError(f"parse failed: {e}") from e
        if isinstance(parse_out, dict) and 'status' in parse_out:
            if parse_out.get('status') != 'success':
                node = parse_out.get('error_node') or {}
                message = parse_out.get('error_message') or "parse failed"
                raise DogSyntaxError(message, node.get('line'), node.get('col'))
            ast_node = parse_out.get('ast')
        else:
            ast_node = parse_out
        return self.transformer.transform(ast_node)

    def _format_parse_error(self, e: DogSyntaxError, source: str) -> str:
        if e.line is not None and e.col is not None:
            return f"ParseError: {e} (line {e.line}, col {e.col})\n{self._source_context(source, e.line, e.col)}"
        return f"ParseError: {e}"

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            out.append(f"{prefix} {str(i).rjust(width)} | {lines[i - 1]}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    def _error(self, message: str, token: Optional[Token] = None) -> ExecutionResult:
        self.runtime.side_effects.append({'topics': ['stderr'], 'message': message})
        return ExecutionResult(
            status='error',
            error_message=message,
            error_token=token,
            side_effects=list(self.runtime.side_effects),
        )

    def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script."""
        # Clear side effects for each run
        self.runtime.side_effects.clear()
        try:
            program = self.parse(source_code)
        except DogSyntaxError as e:
            token = {'line': e.line, 'col': e.col} if e.line is not None else None
            return self._error(self._format_parse_error(e, source_code), token)

        try:
            self.runtime.register_script_library(program.functions)
            value = self.runtime.execute(program.executions)
        except DogError as e:
            return self._error(describe_error(e), e.loc)
        except Exception as e:
            # Host library bugs surface as internal errors
            return self._error(f"InternalError: {type(e).__name__}: {e}")

        return ExecutionResult(
            status='success',
            value=value,
            side_effects=list(self.runtime.side_effects),
        )
