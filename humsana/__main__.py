"""
Entry point for running humsana as a module.

Usage:
    python -m humsana [args]            # Same as the `humsana` command

This is equivalent to:
    python -m humsana.cli.interlock_cli [args]
"""

import sys

from humsana.cli.interlock_cli import main


if __name__ == "__main__":
    sys.exit(main())
