"""Allow ``python -m commitgate``."""

import sys

from .cli import main

main(sys.argv[1:])
