"""
The dog interpreter, containing the control signals, the Evaluator and the Runtime.

Every evaluation function returns a control signal instead of raising:

- `Proceed`: nothing to contribute (assignments).
- `Append(value)`: contribute `value`; the enclosing block concatenates it.
- `Return(value)`: unwind to the nearest function call, which turns it into an Append.
- `Clear(value)`: replace the enclosing block's accumulated result.
- `Abort(error)`: unwind everything; `Runtime.execute` raises the error.
"""

import os
import sys
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from dog.dog_datatypes import (
    Block, CallDepthExceeded, CallStatement, ClearStatement, ControlStatement,
    ExecutionError, ForStatement, Function, IfElseStatement, IfStatement,
    InternalError, OpenStatement, ReturnStatement, SetStatement,
    UndeclaredVariable, Value, WhileStatement, join_values,
)
from dog.dog_functions import FunctionRegistry, Overload
from dog.dog_scope import ScopeStack
from dog.dog_template import LITERAL, Template

# Script calls nest deeper than this abort with CallDepthExceeded.
MAX_CALL_DEPTH = 1000

# Python frames one script call may use, counting nested blocks and control
# statements in its body and arguments.
FRAMES_PER_CALL = 24


def ensure_recursion_limit(max_depth: int = MAX_CALL_DEPTH):
    """Raises the interpreter recursion limit so `max_depth` script calls fit."""
    wanted = max_depth * FRAMES_PER_CALL + 1000
    if sys.getrecursionlimit() < wanted:
        sys.setrecursionlimit(wanted)


@dataclass(frozen=True)
class Proceed:
    pass


PROCEED = Proceed()


@dataclass
class Append:
    value: Value


@dataclass
class Return:
    value: Value


@dataclass
class Clear:
    value: Value


@dataclass
class Abort:
    error: ExecutionError


Signal = Union[Proceed, Append, Return, Clear, Abort]


def suppress(signal: Signal) -> Signal:
    """Drops an Append; statements evaluated for effect only use this."""
    if isinstance(signal, Append):
        return PROCEED
    return signal


class Evaluator:
    """The dog execution engine."""

    def __init__(self, registry: FunctionRegistry, max_call_depth: int = MAX_CALL_DEPTH):
        self.registry = registry
        self.call_depth = 0
        self.max_call_depth = max_call_depth

    def _dbg(self, *parts):
        if os.environ.get("DOG_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def _propagate(self, signal: Signal) -> Signal:
        # Value slots only ever produce Append, Return or Abort.
        if isinstance(signal, Proceed):
            return Abort(InternalError("value produced no result"))
        return signal

    # --- Values ---

    def eval_value(self, node, stack: ScopeStack) -> Signal:
        match node:
            case Template():
                return self.eval_template(node, stack)
            case Block():
                return self.eval_block(node, stack)
            case ControlStatement():
                return self.eval_control(node, stack)
        return Abort(InternalError(f"unknown value node {type(node).__name__}"))

    def eval_template(self, template: Template, stack: ScopeStack) -> Signal:
        output = Value.new_truthy()
        for kind, piece in template:
            if kind == LITERAL:
                output.append(Value(piece, 0))
                continue
            found = stack.get(piece)
            if found is None:
                return Abort(UndeclaredVariable(piece))
            output.append(found)
        return Append(output)

    def eval_block(self, block: Block, stack: ScopeStack) -> Signal:
        with stack.scoped():
            return self.eval_statements(block.executions, stack)

    def eval_statements(self, executions: Iterable, stack: ScopeStack) -> Signal:
        output = Value.new_truthy()
        for execution in executions:
            match execution:
                case Block():
                    signal = suppress(self.eval_block(execution, stack))
                case ControlStatement():
                    signal = suppress(self.eval_control(execution, stack))
                case OpenStatement():
                    signal = self.eval_open(execution, stack)
                case _:
                    signal = Abort(InternalError(f"unknown statement {type(execution).__name__}"))
            match signal:
                case Proceed():
                    continue
                case Append(value=value):
                    output.append(value)
                case Clear(value=value):
                    output = value.copy()
                case _:
                    return signal
        return Append(output)

    # --- Open statements ---

    def eval_open(self, stmt: OpenStatement, stack: ScopeStack) -> Signal:
        match stmt:
            case SetStatement():
                return self.eval_set(stmt, stack)
            case ReturnStatement():
                return self._eval_optional(stmt.value, stack, Return)
            case ClearStatement():
                return self._eval_optional(stmt.value, stack, Clear)
            case CallStatement():
                return self.eval_call(stmt, stack)
        return Abort(InternalError(f"unknown statement {type(stmt).__name__}"))

    def eval_set(self, stmt: SetStatement, stack: ScopeStack) -> Signal:
        signal = self.eval_value(stmt.value, stack)
        if not isinstance(signal, Append):
            return self._propagate(signal)
        stack.set(stmt.variable, signal.value)
        return PROCEED

    def _eval_optional(self, node, stack: ScopeStack, wrap) -> Signal:
        if node is None:
            return wrap(Value.new_truthy())
        signal = self.eval_value(node, stack)
        if not isinstance(signal, Append):
            return self._propagate(signal)
        return wrap(signal.value)

    def eval_call(self, stmt: CallStatement, stack: ScopeStack) -> Signal:
        args: List[Value] = []
        for argument in stmt.arguments:
            signal = self.eval_value(argument, stack)
            if not isinstance(signal, Append):
                return self._propagate(signal)
            args.append(signal.value)
        try:
            overload = self.registry.resolve(stmt.name, len(args))
        except ExecutionError as e:
            return self._abort(e, stmt)
        self._dbg("call", stmt.name, "argc", len(args), "depth", self.call_depth,
                  "host" if overload.is_host else "script")
        if overload.is_host:
            return self.call_host(stmt, overload, args)
        return self.call_script(stmt, overload, args, stack)

    def _abort(self, error: ExecutionError, node) -> Abort:
        # Keeps the innermost location when an error crosses several calls.
        if getattr(error, "loc", None) is None:
            error.loc = getattr(node, "loc", None)
        return Abort(error)

    def call_host(self, stmt: CallStatement, overload: Overload, args: List[Value]) -> Signal:
        try:
            result = overload.body(self.registry, args)
        except ExecutionError as e:
            return self._abort(e, stmt)
        if not isinstance(result, Value):
            error = InternalError(f"host function `{stmt.name}` returned {type(result).__name__}")
            return self._abort(error, stmt)
        return Append(result)

    def call_script(self, stmt: CallStatement, overload: Overload, args: List[Value],
                    stack: ScopeStack) -> Signal:
        if self.call_depth >= self.max_call_depth:
            return self._abort(CallDepthExceeded(self.max_call_depth), stmt)
        callee = stack.sibling()
        remaining = list(args)
        self.call_depth += 1
        try:
            with callee.scoped():
                # Parameters are declared in the call frame rather than set, so
                # a parameter named like a global shadows it instead of
                # mutating it.
                for param in overload.formal_parameters:
                    if param.is_variadic:
                        callee.declare(param.name, join_values(remaining))
                        remaining = []
                        break
                    callee.declare(param.name, remaining.pop(0))
                signal = self.eval_block(overload.body, callee)
        finally:
            self.call_depth -= 1
        if isinstance(signal, Return):
            return Append(signal.value)
        return signal

    # --- Control statements ---

    def eval_control(self, stmt: ControlStatement, stack: ScopeStack) -> Signal:
        match stmt:
            case ForStatement():
                return self.eval_for(stmt, stack)
            case IfStatement():
                return self.eval_if(stmt, stack)
            case IfElseStatement():
                return self.eval_if_else(stmt, stack)
            case WhileStatement():
                return self.eval_while(stmt, stack)
        return Abort(InternalError(f"unknown control statement {type(stmt).__name__}"))

    def eval_for(self, stmt: ForStatement, stack: ScopeStack) -> Signal:
        with stack.scoped():
            signal = self.eval_value(stmt.list, stack)
            if not isinstance(signal, Append):
                return self._propagate(signal)
            items = signal.value
            separator: Optional[Value] = None
            if stmt.separator is not None:
                signal = self.eval_value(stmt.separator, stack)
                if not isinstance(signal, Append):
                    return self._propagate(signal)
                separator = signal.value

            output = Value.new_truthy()
            for piece in items.split(separator):
                with stack.scoped():
                    stack.declare(stmt.variable, Value(piece, 0))
                    signal = self.eval_value(stmt.body, stack)
                if not isinstance(signal, Append):
                    return self._propagate(signal)
                output.append(signal.value)
            return Append(output)

    def _condition(self, node, stack: ScopeStack) -> Union[Value, Signal]:
        signal = self.eval_value(node, stack)
        if not isinstance(signal, Append):
            return self._propagate(signal)
        return signal.value

    def eval_if(self, stmt: IfStatement, stack: ScopeStack) -> Signal:
        condition = self._condition(stmt.condition, stack)
        if not isinstance(condition, Value):
            return condition
        if condition.is_truthy():
            return self.eval_value(stmt.body, stack)
        return Append(Value.new_falsy())

    def eval_if_else(self, stmt: IfElseStatement, stack: ScopeStack) -> Signal:
        condition = self._condition(stmt.condition, stack)
        if not isinstance(condition, Value):
            return condition
        if condition.is_truthy():
            return self.eval_value(stmt.true_body, stack)
        return self.eval_value(stmt.false_body, stack)

    def eval_while(self, stmt: WhileStatement, stack: ScopeStack) -> Signal:
        output = Value.new_truthy()
        while True:
            condition = self._condition(stmt.condition, stack)
            if not isinstance(condition, Value):
                return condition
            if not condition.is_truthy():
                return Append(output)
            with stack.scoped():
                signal = self.eval_value(stmt.body, stack)
            if not isinstance(signal, Append):
                return self._propagate(signal)
            output.append(signal.value)


class Runtime:
    """Owns one registry, one global scope and the side effects of its executions."""

    def __init__(self, registry: Optional[FunctionRegistry] = None,
                 max_call_depth: int = MAX_CALL_DEPTH):
        self.registry = registry if registry is not None else FunctionRegistry()
        self.global_scope: Dict[str, Value] = {}
        self.side_effects: List[Dict] = []
        self.evaluator = Evaluator(self.registry, max_call_depth)
        ensure_recursion_limit(max_call_depth)

    def register_library(self, library: FunctionRegistry) -> str:
        message = self.registry.merge(library)
        self.evaluator._dbg("[runtime]", message)
        return message

    def register_script_library(self, functions: Iterable[Function]) -> List[str]:
        """
        Registers script functions as one unit. On the first OverloadRejected
        the registry is left as it was and the error is raised.
        """
        messages = self.registry.add_scripts(functions)
        for message in messages:
            self.evaluator._dbg("[runtime]", message)
        return messages

    def execute(self, executions: Iterable) -> Value:
        """Runs top-level statements against the global scope."""
        stack = ScopeStack(self.global_scope)
        signal = self.evaluator.eval_statements(executions, stack)
        match signal:
            case Append(value=value) | Return(value=value):
                return value
            case Abort(error=error):
                raise error
        raise InternalError(f"unexpected top-level signal {type(signal).__name__}")
