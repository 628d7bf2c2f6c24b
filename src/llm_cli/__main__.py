"""Entry point for running llm-cli as a module.

This allows running: python -m llm_cli
"""

from __future__ import annotations

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
