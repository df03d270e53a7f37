"""CLI entry point for ai-base.

Allows running the umbrella command from a checkout with `python .`.
"""

import sys

from aibase.cli import main

if __name__ == "__main__":
    sys.exit(main())
