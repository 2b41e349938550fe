#!/usr/bin/env python3
"""
Mock HTTP Server Configuration Helper
Loads the settings file and updates it interactively.
"""

import json
import logging
import os
from pathlib import Path

from colorama import Fore

from .console import ctext
from .paths import CONFIG_FILE
from .storage import MULTIPART_MEMORY_LIMIT

logger = logging.getLogger(__name__)

PORT_ENV = "MOCK_SERVER_PORT"
CONFIG_ENV = "MOCK_SERVER_CONFIG"

DEFAULT_CONFIG = {
    "host": "0.0.0.0",
    "port": 8080,
    "multipart_memory": MULTIPART_MEMORY_LIMIT,
    "max_body_size": None,
}


def normalize_config(config):
    if "server_port" not in config and "port" in config:
        config["server_port"] = config["port"]
    if "port" not in config and "server_port" in config:
        config["port"] = config["server_port"]
    return config


def config_path(environ=None):
    """Settings file location: ``$MOCK_SERVER_CONFIG`` or the project default."""
    environ = os.environ if environ is None else environ
    override = environ.get(CONFIG_ENV)
    return Path(override) if override else CONFIG_FILE


def read_config_file(path):
    """Return the settings stored in ``path``, or ``{}`` if it can't be used.

    A missing or broken settings file is not fatal; it is only logged.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.info("Could not load settings file %s, using defaults", path)
        return {}
    except (OSError, ValueError) as e:
        logger.warning("Could not load settings file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", path)
        return {}
    logger.info("Loaded settings from %s", path)
    return data


def load_config(path=None, environ=None):
    """Merge defaults, the settings file and the environment.

    ``$MOCK_SERVER_PORT`` wins over the port stored in the file.
    """
    environ = os.environ if environ is None else environ
    if path is None:
        path = config_path(environ)

    config = DEFAULT_CONFIG.copy()
    file_config = normalize_config(read_config_file(path))
    config.update(file_config)

    env_port = environ.get(PORT_ENV, "").strip()
    if env_port:
        try:
            config["port"] = int(env_port)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", PORT_ENV, env_port)
    try:
        config["port"] = int(config["port"])
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid port %r in %s", config["port"], path)
        config["port"] = DEFAULT_CONFIG["port"]
    config["server_port"] = config["port"]
    return config


def save_config(config, path=None):
    path = config_path() if path is None else path
    config = normalize_config(dict(config))
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)
    print(ctext(f"✅ Saved configuration to {path}", Fore.GREEN))
    return path


def prompt_port(default, input_func=input):
    port_input = input_func(f"Enter server port (press Enter for {default}): ").strip()
    if not port_input:
        return default
    try:
        return int(port_input)
    except ValueError:
        print(ctext(f"Invalid port, using {default}", Fore.YELLOW))
        return default


def main(path=None, input_func=input):
    print(ctext("🔧 Mock HTTP Server Configuration Helper", Fore.CYAN))
    print(ctext("=" * 40, Fore.CYAN))

    path = config_path() if path is None else path
    config = DEFAULT_CONFIG.copy()
    config.update(normalize_config(read_config_file(path)))

    config["port"] = prompt_port(config["port"], input_func)

    host = input_func(f"Enter listen address (press Enter for {config['host']}): ").strip()
    if host:
        config["host"] = host

    config["server_port"] = config["port"]
    save_config(config, path)

    print(ctext("\n✨ Configuration complete!", Fore.GREEN))
    print(f"🚀 Run: mockhttp   (listening on {config['host']}:{config['port']})")
    return config


if __name__ == "__main__":
    main()
