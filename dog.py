import sys
from pathlib import Path

from dog.dog_runtime import ScriptRunner
from dog.dog_serialize import dump_value


# A basic input prompt.
def input_line(prompt: str) -> str:
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return sys.stdin.readline()


def print_side_effects(result):
    for effect in result.side_effects:
        if effect.get('topics') == ['stdout']:
            sys.stdout.write(effect.get('message', ''))
    sys.stdout.flush()


def print_value(value, fmt: str | None = None):
    """Prints the final text, or the `{text, status}` form when `fmt` is json or yaml."""
    if fmt:
        out = dump_value(value, fmt=fmt)
        print(out, end="" if out.endswith("\n") else "\n")
    elif value.text:
        print(value.text, end="" if value.text.endswith("\n") else "\n")


def run_script_file(file_path: str, fmt: str | None = None):
    """Run a dog script file non-interactively and exit with appropriate status."""
    runner = ScriptRunner()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = runner.handle_script(source)
    print_side_effects(result)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    print_value(result.value, fmt)


def output_format(args) -> str | None:
    if "--yaml" in args:
        return "yaml"
    if "--json" in args:
        return "json"
    return None


def main(argv=None):
    """Run a script file when provided, otherwise start the interactive REPL."""
    args = list(sys.argv[1:] if argv is None else argv)
    fmt = output_format(args)
    paths = [a for a in args if not a.startswith("-")]
    if paths:
        run_script_file(paths[0], fmt)
        return

    print("dog REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = ScriptRunner()

    # REPL Loop
    while True:
        try:
            raw = input_line(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if not line:
                continue
            if line == "exit":
                break

            result = runner.handle_script(line)
            print_side_effects(result)

            if result.status == 'error':
                print(result.format_error(), file=sys.stderr)
                continue

            print_value(result.value, fmt)

        except EOFError:
            print("\nExiting.")
            break


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
