"""Command-line tools for TALON.

``python -m talon.cli <command>`` -- see :mod:`talon.cli.commands` for the
available commands (ingest, add-url, add-note, reset-stale, ask).
"""
