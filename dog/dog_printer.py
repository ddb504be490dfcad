"""
A pretty-printer that renders dog AST nodes back into source text.
"""

from dog.dog_datatypes import (
    Block, CallStatement, ClearStatement, ForStatement, Function, IfElseStatement,
    IfStatement, Program, ReturnStatement, SetStatement, Value, WhileStatement,
)
from dog.dog_template import LITERAL, Region, Template

_LITERAL_ESCAPES = {"\\": "\\\\", '"': '\\"', "$": "\\$", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


class Printer:
    """Formats dog AST nodes into readable, parseable source strings."""

    def __init__(self, indent_width=4):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._handlers.get(type(obj))
        if handler is None:
            return repr(obj)
        return handler(obj, level)

    def _create_handlers(self):
        return {
            Program: self._pformat_program,
            Function: self._pformat_function,
            Block: self._pformat_block,
            Template: self._pformat_template,
            Value: self._pformat_value,
            ForStatement: self._pformat_for,
            IfStatement: self._pformat_if,
            IfElseStatement: self._pformat_if_else,
            WhileStatement: self._pformat_while,
            SetStatement: self._pformat_set,
            ReturnStatement: self._pformat_return,
            ClearStatement: self._pformat_clear,
            CallStatement: self._pformat_call,
        }

    def _pformat_program(self, obj, level):
        parts = [self.pformat(f, level) for f in obj.functions]
        parts += [self.pformat(e, level) for e in obj.executions]
        return "\n".join(parts)

    def _pformat_function(self, obj, level):
        params = ", ".join(("%" if p.is_variadic else "") + p.name for p in obj.formal_parameters)
        return f"fn {obj.name}({params}) {self.pformat(obj.body, level)}"

    def _pformat_block(self, obj, level):
        if not obj.executions:
            return "{}"
        outer_indent = self._indent_char * level
        inner_indent = self._indent_char * (level + 1)
        lines = [inner_indent + self.pformat(e, level + 1) for e in obj.executions]
        return "{\n" + "\n".join(lines) + f"\n{outer_indent}}}"

    def _pformat_template(self, obj, level):
        out = []
        for kind, piece in obj:
            if kind == LITERAL:
                out.append("".join(_LITERAL_ESCAPES.get(c, c) for c in piece))
            else:
                out.append("$" + piece)
        return '"' + "".join(out) + '"'

    def _pformat_value(self, obj, level):
        regions = [Region(LITERAL, 0, len(obj.text))] if obj.text else []
        return self._pformat_template(Template(obj.text, regions), level)

    def _pformat_for(self, obj, level):
        head = f"for {obj.variable} in {self.pformat(obj.list, level)}"
        if obj.separator is not None:
            head += f" split {self.pformat(obj.separator, level)}"
        return f"{head} {self.pformat(obj.body, level)}"

    def _pformat_if(self, obj, level):
        return f"if {self.pformat(obj.condition, level)} {self.pformat(obj.body, level)}"

    def _pformat_if_else(self, obj, level):
        return (f"if {self.pformat(obj.condition, level)} {self.pformat(obj.true_body, level)}"
                f" else {self.pformat(obj.false_body, level)}")

    def _pformat_while(self, obj, level):
        return f"while {self.pformat(obj.condition, level)} {self.pformat(obj.body, level)}"

    def _pformat_set(self, obj, level):
        return f"{obj.variable} = {self.pformat(obj.value, level)}"

    def _pformat_return(self, obj, level):
        if obj.value is None:
            return "return"
        return f"return {self.pformat(obj.value, level)}"

    def _pformat_clear(self, obj, level):
        if obj.value is None:
            return "clear"
        return f"clear {self.pformat(obj.value, level)}"

    def _pformat_call(self, obj, level):
        args = ", ".join(self.pformat(a, level) for a in obj.arguments)
        return f"{obj.name}({args})"
