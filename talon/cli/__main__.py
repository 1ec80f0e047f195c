"""Allow ``python -m talon.cli`` execution."""

from talon.cli.commands import main

main()
