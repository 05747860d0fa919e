"""Entry point for `python -m hubbub`.

Usage:
    python -m hubbub run -c ./config.json
    python -m hubbub run --env-only
"""

from __future__ import annotations

from hubbub.cli import cli

cli()
