#!/usr/bin/env python3
"""Edit config.json for the mock HTTP server interactively."""

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from mockhttp.configure import main

if __name__ == "__main__":
    main()
