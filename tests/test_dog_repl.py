import importlib.util
import json
import sys
from pathlib import Path
import uuid
import pytest
import yaml

def _load_repl_module():
    """Dynamically load the top-level dog.py (REPL) as a module with a unique name."""
    repl_path = Path(__file__).resolve().parents[1] / "dog.py"
    mod_name = f"dog_repl_for_test_{uuid.uuid4().hex}"
    spec = importlib.util.spec_from_file_location(mod_name, str(repl_path))
    mod = importlib.util.module_from_spec(spec)
    sys.modules[mod_name] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod

def _feed(monkeypatch, repl, lines):
    lines = iter(lines)
    monkeypatch.setattr(repl, "input_line", lambda prompt: next(lines))

def test_repl_exit_immediately(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, ["exit\n"])

    repl.main([])
    out = capsys.readouterr().out
    assert "dog REPL v0.1" in out
    assert "Type 'exit' or press Ctrl+D to quit." in out

def test_repl_prints_side_effects_and_values(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, [
        'println "hello from dog"\n',
        "\n",
        "add 1 2\n",
        "exit\n",
    ])

    repl.main([])
    out, err = capsys.readouterr()
    assert "hello from dog\n" in out
    assert out.rstrip().endswith("3")
    assert err == ""

def test_repl_keeps_state_between_lines(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, ["x = kept\n", "put $x\n", "exit\n"])

    repl.main([])
    assert "kept\n" in capsys.readouterr().out

def test_repl_errors_print_to_stderr(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, ["nope 1\n", "exit\n"])

    repl.main([])
    out, err = capsys.readouterr()
    assert "dog REPL v0.1" in out
    assert "UnknownFunction: Use of undefined function `nope`" in err

def test_repl_eof_quits(monkeypatch, capsys):
    repl = _load_repl_module()
    _feed(monkeypatch, repl, [""])

    repl.main([])
    out = capsys.readouterr().out
    assert "Exiting." in out

def test_run_script_file(tmp_path, capsys):
    repl = _load_repl_module()
    script = tmp_path / "hello.dog"
    script.write_text('name = World\nprintln side\nput "Hello $name!"\n', encoding="utf-8")

    repl.main([str(script)])
    assert capsys.readouterr().out == "side\nHello World!\n"

    repl.main(["--json", str(script)])
    out = capsys.readouterr().out
    assert json.loads(out.splitlines()[-1]) == {"text": "Hello World!", "status": 0}

def test_run_script_file_errors_exit_nonzero(tmp_path, capsys):
    repl = _load_repl_module()
    script = tmp_path / "broken.dog"
    script.write_text("put ok\nnope\n", encoding="utf-8")

    with pytest.raises(SystemExit) as exc:
        repl.run_script_file(str(script))
    assert exc.value.code == 1
    assert "Error on line 2" in capsys.readouterr().err

    with pytest.raises(SystemExit):
        repl.run_script_file(str(tmp_path / "missing.dog"))
    assert "file not found" in capsys.readouterr().err

def test_run_script_file_yaml_output(tmp_path, capsys):
    repl = _load_repl_module()
    script = tmp_path / "hello.dog"
    script.write_text("put hi\n", encoding="utf-8")

    repl.main(["--yaml", str(script)])
    out = capsys.readouterr().out
    assert yaml.safe_load(out) == {"text": "hi", "status": 0}
