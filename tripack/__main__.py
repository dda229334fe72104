"""Allow running as ``python -m tripack``."""

import sys

from .cli import main

sys.exit(main())
