from __future__ import annotations

from formforge.cli import cli

if __name__ == "__main__":
    cli()
