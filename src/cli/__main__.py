"""Allow ``python -m src.cli`` execution."""

import sys

from src.cli.cache_admin import main

sys.exit(main())
