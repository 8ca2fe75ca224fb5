"""Run Papyrus Monitor from a source checkout."""

import sys

from papyrus_monitor.cli import main

if __name__ == "__main__":
    sys.exit(main())
