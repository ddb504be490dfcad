import httpx
import pytest

from dog import ScriptRunner, Value


@pytest.fixture
def runner():
    return ScriptRunner()


def value_of(runner, src):
    res = runner.handle_script(src)
    assert res.status == 'success', res.error_message
    return res.value


# --- std ---

def test_put_and_pln(runner):
    assert value_of(runner, "put a b c") == Value("a b c", 0)
    assert value_of(runner, "pln a b") == Value("a b\n", 0)
    assert value_of(runner, "put") == Value("", 0)

def test_print_and_println_emit_side_effects(runner):
    res = runner.handle_script("print a b; println c")
    assert res.value == Value("", 0)
    assert [e['message'] for e in res.side_effects] == ["a b", "c\n"]

def test_status(runner):
    assert value_of(runner, "status { false }") == Value("1", 1)
    assert value_of(runner, "status { true }") == Value("0", 0)
    assert value_of(runner, "status text 3") == Value("text", 3)
    assert value_of(runner, "status text nope") == Value("text", 1)

# --- logic ---

@pytest.mark.parametrize("src, status", [
    ("eq 1 1.0", 0),
    ("eq 1 2", 1),
    ("neq 1 2", 0),
    ("lt 1 2", 0),
    ("lt 2 1", 1),
    ("gt 2 1", 0),
    ("leq 2 2", 0),
    ("geq 1 2", 1),
    ("eq a a", 1),
    ("like a a", 0),
    ("like a b", 1),
    ("and { true } { true }", 0),
    ("and { true } { false }", 1),
    ("or { false } { true }", 0),
    ("or { false } { false }", 1),
    ("not { false }", 0),
    ("not { true }", 1),
    ("true", 0),
    ("false", 1),
])
def test_logic(runner, src, status):
    assert value_of(runner, src).status == status

# --- math ---

@pytest.mark.parametrize("src, text", [
    ("add 1 2 3", "6"),
    ("add 0.1 0.2", "0.30000000000000004"),
    ("sub 10 1 2", "7"),
    ("mul 2 2.5", "5"),
    ("div 7 2", "3.5"),
    ("div 1 0", "inf"),
    ("max 3 9 4", "9"),
    ("min 3 -9 4", "-9"),
    ("floor 2.7", "2"),
    ("ceil 2.1", "3"),
    ("floor -2.5", "-3"),
    ("add 5", "5"),
])
def test_math(runner, src, text):
    assert value_of(runner, src) == Value(text, 0)

def test_math_rejects_non_numbers(runner):
    assert value_of(runner, "add 1 x") == Value("", 1)
    assert value_of(runner, "floor x") == Value("", 1)

def test_random(runner):
    for _ in range(20):
        n = int(value_of(runner, "random 3").text)
        assert 0 <= n < 3
    assert value_of(runner, "random 5 5") == Value("5", 0)
    assert value_of(runner, "random 9 2") == Value("9", 0)
    assert value_of(runner, "random x").status == 1

# --- iter ---

@pytest.mark.parametrize("src, text", [
    ("range 4", "0 1 2 3"),
    ("range 2 5", "2 3 4"),
    ("range 0 10 3", "0 3 6 9"),
    ('range 0 3 1 ","', "0,1,2"),
    ("range 3 1", ""),
    ("len 'a b  c'", "3"),
    ('len "a,b," ","', "3"),
    ("first 'a b c' 2", "a b"),
    ('first "a,b,c" 2 ","', "a,b"),
    ("last 'a b c' 2", "b c"),
    ("last 'a b c' 0", ""),
    ("append 'a b' 'c d'", "a b c d"),
    ('append "a,b" c ","', "a,b,c"),
])
def test_iter(runner, src, text):
    assert value_of(runner, src) == Value(text, 0)

@pytest.mark.parametrize("src", [
    "range 0 5 0",
    "range 0 5 -1",
    "range x",
    "first 'a b' 3",
    "first 'a b' -1",
    "last 'a b' x",
])
def test_iter_falsy(runner, src):
    assert value_of(runner, src).status == 1

# --- str ---

def test_case_conversion(runner):
    assert value_of(runner, "upper hello world") == Value("HELLO WORLD", 0)
    assert value_of(runner, "lower ABC") == Value("abc", 0)

def test_replace(runner):
    assert value_of(runner, "replace 'a-b-c' - +") == Value("a+b+c", 0)

def test_search(runner):
    src = 'search "apple\\nbanana\\navocado" "^a"'
    assert value_of(runner, src) == Value("apple\navocado\n", 0)
    assert value_of(runner, "search abc '('").status == 1

def test_character_classes(runner):
    assert value_of(runner, "is_alpha abc déf").status == 0  # arguments are checked one by one
    assert value_of(runner, "is_alpha abcdéf").status == 0
    assert value_of(runner, "is_alpha ab1").status == 1
    assert value_of(runner, "is_alphanumeric ab1 c2").status == 0
    assert value_of(runner, "is_alphanumeric 'a b'").status == 1

# --- json ---

def test_gron(runner):
    src = """gron '{"b": [1, "x"], "a": {"c": null, "d": true}}'"""
    expected = (
        "json = {}\n"
        "json.a = {}\n"
        "json.a.c = null\n"
        "json.a.d = true\n"
        "json.b = []\n"
        "json.b[0] = 1\n"
        'json.b[1] = "x"\n'
    )
    assert value_of(runner, src) == Value(expected, 0)

def test_gron_invalid_json(runner):
    assert value_of(runner, "gron '{nope'").status == 1

# --- net ---

def test_get_returns_body(monkeypatch, runner):
    captured = {}

    def fake_http_get(url, config=None):
        captured["url"] = url
        captured["config"] = dict(config or {})
        return "body text"

    monkeypatch.setattr("dog.dog_http.http_get", fake_http_get)
    assert value_of(runner, "get http://example.com/x") == Value("body text", 0)
    assert captured == {"url": "http://example.com/x", "config": {}}
    value_of(runner, "get http://example.com/x 2.5")
    assert captured["config"] == {"timeout": 2.5}

def test_get_failures_are_falsy(monkeypatch, runner):
    def failing_http_get(url, config=None):
        raise httpx.ConnectError("refused")

    monkeypatch.setattr("dog.dog_http.http_get", failing_http_get)
    assert value_of(runner, "get http://example.com").status == 1
    assert value_of(runner, "get http://example.com soon").status == 1

# --- meta ---

def test_eval_runs_nested_source(runner):
    src = """
fn double(x) { put $x $x }
eval "double hi"
"""
    assert value_of(runner, src) == Value("hi hi", 0)

def test_eval_folds_errors_into_falsy_value(runner):
    v = value_of(runner, "eval 'nope 1'")
    assert v.status == 1
    assert v.text == "UnknownFunction: Use of undefined function `nope`"
    v = value_of(runner, "eval 'put {'")
    assert v.status == 1
    assert v.text.startswith("SyntaxError")

def test_eval_functions_stay_nested(runner):
    res = runner.handle_script("eval 'fn inner() { put x }'\ninner")
    assert res.status == 'error'
    assert "UnknownFunction" in res.error_message

def test_eval_side_effects_reach_caller(runner):
    res = runner.handle_script("eval 'println nested'")
    assert res.side_effects == [{'topics': ['stdout'], 'message': 'nested\n'}]

def test_function_listings(runner):
    runner.handle_script("fn hello(who) { put hi $who }")
    assert value_of(runner, "scripts") == Value("fn hello(who) { put hi $who }", 0)
    assert value_of(runner, "builtins not") == Value("fn not(a) {\n    // built-in\n}", 0)
    listing = value_of(runner, "functions").text
    assert "fn hello(who) { put hi $who }" in listing
    assert "fn range(min, max, step, sep) {\n    // built-in\n}" in listing
    assert value_of(runner, "scripts not") == Value("", 0)
