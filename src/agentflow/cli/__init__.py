"""
CLI layer for agentflow.

Provides a Typer application that loads definition files and hands them
to the orchestration layer. This package handles only terminal transport:
argument parsing, coloured output and table formatting.

Entry point::

    agentflow --help
"""

from agentflow.cli.app import app

__all__ = ["app"]
