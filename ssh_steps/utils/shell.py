"""Shell command safety utilities."""

import shlex

DEFAULT_INTERPRETER = "sh"


def quote_path(path: str) -> str:
    """Safely quote a path for shell commands.

    Args:
        path: File system path to quote

    Returns:
        Shell-safe quoted path
    """
    return shlex.quote(path)


def sudo_wrap(command: str, password: str | None) -> tuple[str, str | None]:
    """Prefix ``command`` with sudo.

    With a password, sudo reads it from stdin with an empty prompt so the
    prompt never shows up in captured output. Without one, sudo must not
    prompt at all.

    Returns:
        Tuple of (command line, text to write to stdin or None)
    """
    if password:
        return f"sudo -S -p '' {command}", password + "\n"
    return f"sudo -n {command}", None


def script_interpreter(script: str) -> str:
    """Return the interpreter named by a script's shebang line.

    Falls back to ``sh``. Every supported interpreter reads the program
    from stdin when given no script argument.
    """
    first_line = script.split("\n", 1)[0].strip()
    if first_line.startswith("#!"):
        interpreter = first_line[2:].strip()
        if interpreter:
            return interpreter
    return DEFAULT_INTERPRETER
