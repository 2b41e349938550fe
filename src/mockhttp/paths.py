"""Common paths for the mock HTTP server."""
from pathlib import Path

# Location of the installed package (src/mockhttp)
PACKAGE_ROOT = Path(__file__).resolve().parent

# Repository root (two levels up from this file)
PROJECT_ROOT = PACKAGE_ROOT.parent.parent

# Source checkouts keep config.json at the repository root, installed
# copies look in the working directory
if (PROJECT_ROOT / "pyproject.toml").exists():
    CONFIG_FILE = PROJECT_ROOT / "config.json"
else:
    CONFIG_FILE = Path.cwd() / "config.json"

LOG_FILE = "mock-http-server.log"
