"""Allow `python -m aibase.cli`."""

import sys

from .lib import main

if __name__ == "__main__":
    sys.exit(main())
