"""Hubbub command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``hubbub`` script).
"""

from hubbub.cli.main import cli

__all__ = ["cli"]
