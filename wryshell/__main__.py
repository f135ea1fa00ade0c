"""Entry point for ``python -m wryshell``."""

import sys

from .cli import main


sys.exit(main())
