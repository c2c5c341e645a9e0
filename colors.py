# colors.py
"""Color palette codec: client-facing names <-> hex values stored in the db."""
from typing import Any, Dict

DEFAULT_COLOR = "blue"

PALETTE: Dict[str, str] = {
    "red": "#ef4444",
    "blue": "#3b82f6",
    "green": "#22c55e",
    "yellow": "#eab308",
    "purple": "#a855f7",
    "pink": "#ec4899",
    "orange": "#f97316",
    "cyan": "#06b6d4",
}

_NAMES_BY_HEX = {hex_value: name for name, hex_value in PALETTE.items()}


def normalize_name(value: Any) -> str:
    """Return a palette name for anything; unknown input gives the default."""
    if isinstance(value, str):
        key = value.strip().lower()
        if key in PALETTE:
            return key
    return DEFAULT_COLOR


def to_hex(name: Any) -> str:
    return PALETTE[normalize_name(name)]


def to_name(hex_value: Any) -> str:
    if isinstance(hex_value, str):
        key = hex_value.strip().lower()
        if not key.startswith("#"):
            key = "#" + key
        return _NAMES_BY_HEX.get(key, DEFAULT_COLOR)
    return DEFAULT_COLOR
