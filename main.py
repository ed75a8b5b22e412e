#!/usr/bin/env python3
"""
Trivia Bot entry point.

Reads config.json (or the file named by TRIVIA_CONFIG), configures logging
and starts the Discord bot. DISCORD_BOT_TOKEN takes precedence over the
token stored in the config file.

Usage:
    python main.py
    TRIVIA_CONFIG=/etc/trivia/config.json trivia-bot
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from trivia.bot import run_bot, setup_logging

PLACEHOLDER_TOKEN = "YOUR_DISCORD_BOT_TOKEN_HERE"

DEFAULT_SECTIONS = {
    'bot': {'command_prefix': '!'},
    'game': {},
    'logging': {'level': 'INFO', 'log_directory': './logs/'},
}


class ConfigError(Exception):
    """Raised when the bot cannot be configured from disk or environment."""


def resolve_config_path():
    return Path(os.getenv('TRIVIA_CONFIG', 'config.json'))


def load_config(path=None):
    """Read the JSON config file and fill in missing sections.

    Args:
        path: Config file location, defaults to resolve_config_path()

    Returns:
        Config dictionary with 'bot', 'game' and 'logging' sections

    Raises:
        ConfigError: If the file is missing, unreadable or not a JSON object
    """
    path = Path(path) if path else resolve_config_path()
    if not path.is_file():
        raise ConfigError(
            f"{path} not found. Copy config.example.json to {path.name} and set your bot token."
        )

    try:
        raw = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Could not read {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a JSON object")

    config = {}
    for section, defaults in DEFAULT_SECTIONS.items():
        config[section] = {**defaults, **(raw.get(section) or {})}
    return config


def get_bot_token(config):
    """Pick the bot token, environment first."""
    token = os.getenv('DISCORD_BOT_TOKEN') or config['bot'].get('token')
    if not token or token == PLACEHOLDER_TOKEN:
        raise ConfigError(
            "Discord bot token not configured. Set DISCORD_BOT_TOKEN or the 'token' field of the bot section."
        )
    return token


def configure_logging(config):
    log_config = config['logging']
    level = getattr(logging, str(log_config['level']).upper(), logging.INFO)
    return setup_logging(log_config['log_directory'], level)


async def start(config):
    token = get_bot_token(config)
    await run_bot(token, config)


def cli():
    try:
        config = load_config()
        configure_logging(config)
        print("🤖 Starting Trivia Bot...")
        asyncio.run(start(config))
    except ConfigError as e:
        print(f"❌ Configuration error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")


if __name__ == "__main__":
    cli()
