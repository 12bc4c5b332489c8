"""Configuration - environment settings and tracked account parsing."""

from bili_relay.config.accounts import parse_uids
from bili_relay.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "parse_uids"]
