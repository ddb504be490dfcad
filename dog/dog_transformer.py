"""
Transforms the raw parser AST into the dog AST of dog_datatypes.
"""

from dog import dog_template
from dog.dog_datatypes import (
    Block, CallStatement, ClearStatement, DogSyntaxError, ForStatement,
    FormalParameter, Function, IfElseStatement, IfStatement, Program,
    ReturnStatement, SetStatement, WhileStatement,
)

STRING_TAGS = ("dquote_string", "squote_string", "bare_string")
NAME_TAGS = ("function_name", "variable_name", "formal_param")
STATEMENT_TAGS = (
    "block", "for_split_stmt", "for_stmt", "if_else_stmt", "if_stmt", "while_stmt",
    "set_stmt", "return_stmt", "clear_stmt", "call",
)
KNOWN_TAGS = frozenset(("function",) + STRING_TAGS + NAME_TAGS + STATEMENT_TAGS)


class DogTransformer:
    def _attach_loc(self, obj, node):
        line = node.get('line'); col = node.get('col')
        if line is not None and col is not None and hasattr(obj, '__dict__'):
            obj.loc = {'line': line, 'col': col, 'tag': node.get('tag'), 'text': node.get('text')}
        return obj

    def _nodes(self, children):
        """Yields the meaningful nodes under `children`, looking through wrappers."""
        if children is None:
            return
        if isinstance(children, list):
            for child in children:
                yield from self._nodes(child)
            return
        if not isinstance(children, dict):
            return
        if 'ast' in children and 'tag' not in children:
            yield from self._nodes(children['ast'])
            return
        tag = children.get('tag')
        if tag in KNOWN_TAGS:
            yield children
            return
        # Anonymous sequences, promoted choices and named-children dicts
        if 'children' in children:
            yield from self._nodes(children['children'])
        elif tag is None:
            for value in children.values():
                yield from self._nodes(value)

    def transform(self, node) -> Program:
        if isinstance(node, dict) and 'ast' in node and 'tag' not in node:
            node = node['ast']
        if isinstance(node, dict) and node.get('tag') == 'program':
            node = node.get('children', [])
        program = Program()
        for child in self._nodes(node):
            if child['tag'] == 'function':
                program.functions.append(self.transform_function(child))
            else:
                program.executions.append(self.transform_node(child))
        return program

    def transform_function(self, node) -> Function:
        name = None
        params = []
        body = None
        for child in self._nodes(node.get('children')):
            match child['tag']:
                case 'function_name':
                    name = child['text']
                case 'formal_param':
                    text = child['text']
                    params.append(FormalParameter(text.lstrip('%'), text.startswith('%')))
                case 'block':
                    body = self.transform_node(child)
        if name is None or body is None:
            raise self._malformed(node)
        function = Function(name, params, body, node.get('text'))
        return self._attach_loc(function, node)

    def transform_node(self, node):
        tag = node['tag']
        children = list(self._nodes(node.get('children')))

        match tag:
            case 'dquote_string' | 'bare_string':
                return dog_template.parse(node['text'], expand_variables=True)
            case 'squote_string':
                return dog_template.parse(node['text'], expand_variables=False)
            case 'block':
                return self._attach_loc(Block([self.transform_node(c) for c in children]), node)
            case 'for_split_stmt':
                variable, items, separator, body = self._expect(node, children, 4)
                return self._attach_loc(ForStatement(
                    variable['text'], self.transform_node(items), self.transform_node(body),
                    self.transform_node(separator)), node)
            case 'for_stmt':
                variable, items, body = self._expect(node, children, 3)
                return self._attach_loc(ForStatement(
                    variable['text'], self.transform_node(items), self.transform_node(body)), node)
            case 'if_else_stmt':
                condition, true_body, false_body = (self.transform_node(c) for c in self._expect(node, children, 3))
                return self._attach_loc(IfElseStatement(condition, true_body, false_body), node)
            case 'if_stmt':
                condition, body = (self.transform_node(c) for c in self._expect(node, children, 2))
                return self._attach_loc(IfStatement(condition, body), node)
            case 'while_stmt':
                condition, body = (self.transform_node(c) for c in self._expect(node, children, 2))
                return self._attach_loc(WhileStatement(condition, body), node)
            case 'set_stmt':
                variable, value = self._expect(node, children, 2)
                return self._attach_loc(SetStatement(variable['text'], self.transform_node(value)), node)
            case 'return_stmt':
                value = self.transform_node(children[0]) if children else None
                return self._attach_loc(ReturnStatement(value), node)
            case 'clear_stmt':
                value = self.transform_node(children[0]) if children else None
                return self._attach_loc(ClearStatement(value), node)
            case 'call':
                if not children or children[0]['tag'] != 'function_name':
                    raise self._malformed(node)
                arguments = [self.transform_node(c) for c in children[1:]]
                return self._attach_loc(CallStatement(children[0]['text'], arguments), node)
        raise self._malformed(node)

    def _expect(self, node, children, count):
        if len(children) != count:
            raise self._malformed(node)
        return children

    def _malformed(self, node):
        return DogSyntaxError(f"malformed `{node.get('tag')}` node", node.get('line'), node.get('col'))
