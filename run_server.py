#!/usr/bin/env python3
"""Start the mock HTTP server from a source checkout."""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from mockhttp.run_server import main

if __name__ == "__main__":
    sys.exit(main())
