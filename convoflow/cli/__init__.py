"""Convoflow command-line test panel."""

from convoflow.cli.main import cli, main

__all__ = ["cli", "main"]
