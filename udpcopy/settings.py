"""Settings taken from the environment, which take precedence over the program's own."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from .debug import DebugLevel, dbg_print, error_print, set_level
from .msgevents import ErrorDrop, ErrorFlipBits
from .packet_manager import PacketManager

__all__ = ["EnvKey", "parse_long_list", "SettingsManager"]

_LONG_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(
    r"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)


class EnvKey(Enum):
    """Environment variables that override settings, with their names."""

    AUTOGRADER = "CPE464_AUTOGRADER"
    OVERRIDE_PORT = "CPE464_OVERRIDE_PORT"
    OVERRIDE_DEBUG = "CPE464_OVERRIDE_DEBUG"
    OVERRIDE_SEEDRAND = "CPE464_OVERRIDE_SEEDRAND"
    OVERRIDE_ERR_RATE = "CPE464_OVERRIDE_ERR_RATE"
    OVERRIDE_ERR_DROP = "CPE464_OVERRIDE_ERR_DROP"
    OVERRIDE_ERR_FLIP = "CPE464_OVERRIDE_ERR_FLIP"


def _parse_long(text: str) -> int | None:
    match = _LONG_RE.match(text)
    return int(match.group(1)) if match else None


def _parse_float(text: str) -> float | None:
    match = _FLOAT_RE.match(text)
    return float(match.group(1)) if match else None


def parse_long_list(text: str) -> list[int]:
    """Parse a comma-separated list of integers.

    Empty items are skipped. Parsing stops at the first item that does not
    start with a number; the numbers before it are kept.
    """
    values: list[int] = []
    for token in (part for part in text.split(",") if part):
        value = _parse_long(token)
        if value is None:
            error_print("Invalid Value in String\n")
            break
        values.append(value)
    return values


_PARSERS = {
    EnvKey.AUTOGRADER: str,
    EnvKey.OVERRIDE_PORT: _parse_long,
    EnvKey.OVERRIDE_DEBUG: _parse_long,
    EnvKey.OVERRIDE_SEEDRAND: _parse_long,
    EnvKey.OVERRIDE_ERR_RATE: _parse_float,
    EnvKey.OVERRIDE_ERR_DROP: parse_long_list,
    EnvKey.OVERRIDE_ERR_FLIP: parse_long_list,
}


def _warn(text: str) -> None:
    dbg_print(DebugLevel.WARN, text)


class SettingsManager:
    """Applies environment overrides to a packet manager.

    The user-mode setters return ``True`` when the setting was applied and
    ``False`` when an environment override holds it fixed.
    """

    def __init__(self, packet_manager: PacketManager, environ: Mapping[str, str] | None = None) -> None:
        self.packet_manager = packet_manager
        set_level(DebugLevel.WARN)
        env = os.environ if environ is None else environ
        self.overrides: dict[EnvKey, Any] = {}
        for key in EnvKey:
            dbg_print(DebugLevel.DEBUG, f"** Checking Env: {key.value} **\n")
            raw = env.get(key.value)
            if raw is None:
                continue
            dbg_print(DebugLevel.VDEBUG, f"**** Found Env: {key.value} => {raw} **\n")
            value = _PARSERS[key](raw)
            if value is not None:
                self.overrides[key] = value
        self._apply()

    def is_overridden(self, key: EnvKey) -> bool:
        """Return whether the environment set ``key``."""
        return key in self.overrides

    def _apply(self) -> None:
        ov = self.overrides
        if EnvKey.OVERRIDE_PORT in ov:
            _warn(f"** ENV - OVERRIDE PORT: {ov[EnvKey.OVERRIDE_PORT]} **\n")
        if EnvKey.AUTOGRADER in ov:
            _warn("** ENV - Autograder **\n")
        if EnvKey.OVERRIDE_DEBUG in ov:
            level = ov[EnvKey.OVERRIDE_DEBUG]
            _warn(f"** ENV - OVERRIDE DEBUG: {level} **\n")
            set_level(level)
        if EnvKey.OVERRIDE_SEEDRAND in ov:
            seed = ov[EnvKey.OVERRIDE_SEEDRAND]
            _warn(f"** ENV - OVERRIDE SEED RAND: {seed} **\n")
            self.packet_manager.set_rand_seed(seed)
        if EnvKey.OVERRIDE_ERR_RATE in ov:
            rate = ov[EnvKey.OVERRIDE_ERR_RATE]
            _warn(f"** ENV - OVERRIDE ERROR RATE: {rate:f} **\n")
            self.packet_manager.set_error_rate(rate)
        if EnvKey.OVERRIDE_ERR_DROP in ov:
            self._apply_drop(ov[EnvKey.OVERRIDE_ERR_DROP])
        if EnvKey.OVERRIDE_ERR_FLIP in ov:
            self._apply_flip(ov[EnvKey.OVERRIDE_ERR_FLIP])

    def _apply_drop(self, values: list[int]) -> None:
        drops = [value for value in values if value >= 0]
        event = ErrorDrop()
        if not drops:
            _warn("** ENV - OVERRIDE ERROR DROP: ENABLED **\n")
            self.packet_manager.add_random_event(event)
            return
        _warn("** ENV - OVERRIDE ERROR DROP: __List__ **\n")
        for value in drops:
            _warn(f"{value}\n")
        event.set_drop_specific(drops)
        self.packet_manager.add_standard_event(event)

    def _apply_flip(self, values: list[int]) -> None:
        # Flipping specific messages is not supported; only the random form applies.
        if not [value for value in values if value >= 0]:
            _warn("** ENV - OVERRIDE ERROR FLIP: ENABLED **\n")
            self.packet_manager.add_random_event(ErrorFlipBits(self.packet_manager.rng))

    def set_debug(self, level: int) -> bool:
        """Set the debug level unless the environment fixed it."""
        if EnvKey.OVERRIDE_DEBUG in self.overrides:
            return False
        set_level(level)
        return True

    def set_seed(self, seed: int) -> bool:
        """Reseed the packet manager unless the environment fixed the seed."""
        if EnvKey.OVERRIDE_SEEDRAND in self.overrides:
            return False
        self.packet_manager.set_rand_seed(seed)
        return True

    def set_error_rate(self, rate: float) -> bool:
        """Set the error rate unless the environment fixed it."""
        if EnvKey.OVERRIDE_ERR_RATE in self.overrides:
            return False
        self.packet_manager.set_error_rate(rate)
        return True

    def set_drop(self, enabled: bool) -> bool:
        """Enable random drops unless the environment controls dropping."""
        if EnvKey.OVERRIDE_ERR_DROP in self.overrides:
            return False
        if enabled:
            self.packet_manager.add_random_event(ErrorDrop())
        return True

    def set_flip(self, enabled: bool) -> bool:
        """Enable random bit flips unless the environment controls flipping."""
        if EnvKey.OVERRIDE_ERR_FLIP in self.overrides:
            return False
        if enabled:
            self.packet_manager.add_random_event(ErrorFlipBits(self.packet_manager.rng))
        return True