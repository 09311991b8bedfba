"""Allow `python -m hyss`."""

import sys

from .cli import main

sys.exit(main())
