"""
config.py
─────────
Configuration loader for ner-pipeline-cache.

Loads settings from a YAML file and builds one NerSettings value per
configured slot.
"""

import logging
import os
from typing import Dict, List, Tuple

import yaml

from ner import InvalidInput, NerSettings, load_patterns, merge_patterns

# Project root (two levels up from src/utils/)
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
DEFAULT_CONFIG_PATH = os.path.join(PROJECT_ROOT, 'configs', 'default.yaml')


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure logging with appropriate format and level."""

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(levelname)s - %(name)s [%(threadName)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    return logging.getLogger(__name__)


def load_config(config_path: str = None) -> dict:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML config file.
                     Defaults to configs/default.yaml relative to project root.

    Returns:
        Parsed config dictionary with resolved paths.

    Raises:
        FileNotFoundError: If the config file does not exist.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f) or {}

    # Resolve relative pattern files against project root
    for _, slot in _slot_items(config):
        patterns_file = slot.get('patterns_file')
        if patterns_file and not os.path.isabs(patterns_file):
            slot['patterns_file'] = os.path.join(PROJECT_ROOT, patterns_file)

    return config


def logging_level(config: dict, default: str = "INFO") -> str:
    """Return the 'logging.level' value from the config, or default."""
    return (config.get('logging') or {}).get('level') or default


def _slot_items(config: dict) -> List[Tuple[str, dict]]:
    """Return (name, params) pairs from the 'slots' mapping.

    Raises:
        InvalidInput: If 'slots' is not a mapping or a slot is not a mapping.
    """
    slots = config.get('slots') or {}
    if not isinstance(slots, dict):
        raise InvalidInput(f"'slots' must be a mapping, got {type(slots).__name__}")

    items = []
    for name, params in slots.items():
        if params is None:
            params = {}
            slots[name] = params
        if not isinstance(params, dict):
            raise InvalidInput(
                f"Slot '{name}': expected a mapping of settings, got {type(params).__name__}"
            )
        items.append((name, params))
    return items


def build_settings(config: dict) -> Dict[str, NerSettings]:
    """Build NerSettings for every slot in the config.

    Reads the 'slots' key from the config dict.  Each sub-key is a slot
    name, and its value is a dict of NerSettings fields plus an optional
    'patterns_file' (JSONL) whose patterns are appended to any inline
    'patterns'.

    Args:
        config: Parsed config dictionary with a 'slots' key.

    Returns:
        Dict mapping slot names to NerSettings.

    Raises:
        InvalidInput: If a slot is not a mapping, or has unknown keys or
            invalid values.
    """
    settings = {}
    for name, params in _slot_items(config):
        params = dict(params)
        patterns_file = params.pop('patterns_file', None)
        try:
            if patterns_file:
                params['patterns'] = merge_patterns(
                    params.get('patterns') or (),
                    load_patterns(patterns_file),
                )
            settings[str(name)] = NerSettings.from_dict(params)
        except InvalidInput as exc:
            raise InvalidInput(f"Slot '{name}': {exc}") from exc

    return settings
