"""
Argv normalization applied before Typer parses the command line.

- ``shopform --version`` / ``shopform -V`` run the ``version`` command
- ``--debug`` is accepted anywhere and moved in front of the subcommand,
  where the app callback declares it

Tokens after a bare ``--`` are passed through untouched.
"""

VERSION_FLAGS = ("--version", "-V")
GLOBAL_FLAGS = ("--debug",)


def preprocess_argv(argv: list[str]) -> list[str]:
    """Return the argument list Typer should see for ``argv``."""
    if argv[:1] and argv[0] in VERSION_FLAGS:
        return ["version"]

    if "--" in argv:
        split = argv.index("--")
        options, passthrough = argv[:split], argv[split:]
    else:
        options, passthrough = argv, []

    hoisted = [flag for flag in GLOBAL_FLAGS if flag in options]
    remaining = [token for token in options if token not in GLOBAL_FLAGS]
    return [*hoisted, *remaining, *passthrough]
