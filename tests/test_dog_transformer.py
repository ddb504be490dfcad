import pytest
from dog.dog_datatypes import (
    Block, CallStatement, ClearStatement, DogSyntaxError, ForStatement,
    FormalParameter, IfElseStatement, IfStatement, ReturnStatement, SetStatement,
    WhileStatement,
)
from dog.dog_runtime import ScriptRunner
from dog.dog_template import LITERAL, VARIABLE, parse
from dog.dog_transformer import DogTransformer


@pytest.fixture(scope="module")
def runner():
    return ScriptRunner(load_stdlib=False)


def test_shell_call(runner):
    program = runner.parse('put hello "big $name" \'raw $x\'')
    assert program.functions == []
    assert program.executions == [CallStatement("put", [
        parse("hello"),
        parse('"big $name"'),
        parse("'raw $x'", expand_variables=False),
    ])]

def test_paren_call(runner):
    program = runner.parse('add(1, "2")')
    assert program.executions == [CallStatement("add", [parse("1"), parse('"2"')])]

def test_call_without_arguments(runner):
    assert runner.parse("true").executions == [CallStatement("true", [])]
    assert runner.parse("true()").executions == [CallStatement("true", [])]

def test_statement_separators_and_comments(runner):
    program = runner.parse("""
        # leading comment
        a = 1; b = 2
        put $a $b   # trailing comment

        put done
    """)
    assert [type(e) for e in program.executions] == [SetStatement, SetStatement, CallStatement, CallStatement]
    assert program.executions[0] == SetStatement("a", parse("1"))

def test_function_definition(runner):
    program = runner.parse("""
fn greet(who, %rest) {
    pln "hi $who" $rest
}
greet bob
""")
    assert len(program.functions) == 1
    f = program.functions[0]
    assert f.name == "greet"
    assert f.formal_parameters == [FormalParameter("who"), FormalParameter("rest", True)]
    assert f.body == Block([CallStatement("pln", [parse('"hi $who"'), parse("$rest")])])
    assert f.source_text.startswith("fn greet(who, %rest) {")
    assert program.executions == [CallStatement("greet", [parse("bob")])]

def test_control_statements(runner):
    program = runner.parse("""
for x in "a b" { put $x }
for x in "a,b" split "," { put $x }
if $c { put yes }
if $c { put yes } else { put no }
while $c { c = "" }
""")
    for_stmt, for_split, if_stmt, if_else, while_stmt = program.executions
    assert for_stmt == ForStatement("x", parse('"a b"'), Block([CallStatement("put", [parse("$x")])]))
    assert isinstance(for_split, ForStatement)
    assert for_split.separator == parse('","')
    assert isinstance(if_stmt, IfStatement)
    assert isinstance(if_else, IfElseStatement)
    assert if_else.false_body == Block([CallStatement("put", [parse("no")])])
    assert isinstance(while_stmt, WhileStatement)
    assert while_stmt.body == Block([SetStatement("c", parse('""'))])

def test_else_on_next_line(runner):
    program = runner.parse("if $c {\n  put a\n}\nelse {\n  put b\n}")
    assert isinstance(program.executions[0], IfElseStatement)

def test_return_and_clear(runner):
    program = runner.parse("return\nreturn $x\nclear\nclear { put a }")
    assert program.executions == [
        ReturnStatement(None),
        ReturnStatement(parse("$x")),
        ClearStatement(None),
        ClearStatement(Block([CallStatement("put", [parse("a")])])),
    ]

def test_control_statement_as_argument(runner):
    program = runner.parse("put if $c { put a } else { put b }")
    call = program.executions[0]
    assert isinstance(call.arguments[0], IfElseStatement)

def test_set_from_block(runner):
    program = runner.parse("x = {\n  put a\n  put b\n}")
    assert program.executions == [SetStatement("x", Block([
        CallStatement("put", [parse("a")]),
        CallStatement("put", [parse("b")]),
    ]))]

def test_keyword_prefixed_names_are_calls(runner):
    program = runner.parse("format x")
    assert program.executions == [CallStatement("format", [parse("x")])]

def test_template_regions_survive_parsing(runner):
    call = runner.parse('put "a $b c"').executions[0]
    assert list(call.arguments[0]) == [(LITERAL, "a "), (VARIABLE, "b"), (LITERAL, " c")]

def test_syntax_errors(runner):
    with pytest.raises(DogSyntaxError):
        runner.parse("put {")
    with pytest.raises(DogSyntaxError):
        runner.parse("fn (a) {}")

def test_transform_rejects_malformed_nodes():
    with pytest.raises(DogSyntaxError):
        DogTransformer().transform({'tag': 'program', 'children': [{'tag': 'set_stmt', 'children': []}]})

def test_transform_looks_through_wrappers():
    tree = {'status': 'success', 'ast': None}
    tree['ast'] = {'tag': 'program', 'children': [[
        {'tag': 'execution', 'children': [
            {'tag': 'call', 'text': 'true', 'line': 1, 'col': 1, 'children': [
                {'tag': 'function_name', 'text': 'true'},
            ]},
        ]},
    ]]}
    program = DogTransformer().transform(tree)
    assert program.executions == [CallStatement("true", [])]
    assert program.executions[0].loc == {'line': 1, 'col': 1, 'tag': 'call', 'text': 'true'}
