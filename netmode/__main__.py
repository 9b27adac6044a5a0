"""Entry point for `python -m netmode`."""

import sys

from .cli.netmodectl import main

if __name__ == '__main__':
    sys.exit(main())
