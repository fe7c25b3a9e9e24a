"""Allow ``python -m deadrop``."""

import sys

from deadrop.cli import main

if __name__ == "__main__":
    sys.exit(main())
