"""Grid snapping for ticks.

``unit = timebase / denominator``, where the denominator is already
adjusted for the dotted (÷1.5) and triplet (×1.5) modifiers.  With
``timebase=480`` a denominator of 4 gives a 120-tick grid, dotted 4 gives
180 and triplet 4 gives 80.

Fine dotted and triplet grids have fractional units (480 / 85.33 = 5.625).
Snapped ticks are integers, so grid line ``k`` sits at ``floor(k * unit)``
and every snap picks one of those lines.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .constants import DEFAULT_QUANTIZE_DENOMINATOR, DEFAULT_TIMEBASE, QUANTIZE_DENOMINATORS

if TYPE_CHECKING:
    from .config import ConfigManager

# Absorbs float noise from fractional denominators (480 / (4 / 1.5) != 180.0 exactly)
_EPSILON = 1e-9
_GRID_EPSILON = 1e-6


def effective_denominator(base: int, dotted: bool = False, triplet: bool = False) -> float:
    """Combine a grid denominator with its modifiers.

    The two modifiers compose; the toolbar only ever sets one of them.
    """
    value = float(base)
    if dotted:
        value /= 1.5
    if triplet:
        value *= 1.5
    return value


def split_denominator(value: float) -> tuple[int, bool, bool]:
    """Inverse of :func:`effective_denominator` → ``(base, dotted, triplet)``.

    A value that is not an integer but becomes one when multiplied by 1.5
    is dotted; a value divisible by 1.5 is a triplet.
    """
    dotted = not _is_integer(value) and _is_integer(value * 1.5)
    triplet = _is_integer(value / 1.5)
    base = value
    if triplet:
        base /= 1.5
    if dotted:
        base *= 1.5
    return int(round(base)), dotted, triplet


def step_denominator(value: float, delta: int) -> float:
    """Move one grid size finer (delta > 0) or coarser, keeping modifiers."""
    base, dotted, triplet = split_denominator(value)
    try:
        index = QUANTIZE_DENOMINATORS.index(base)
    except ValueError:
        index = QUANTIZE_DENOMINATORS.index(DEFAULT_QUANTIZE_DENOMINATOR)
    index = max(0, min(len(QUANTIZE_DENOMINATORS) - 1, index + delta))
    return effective_denominator(QUANTIZE_DENOMINATORS[index], dotted, triplet)


def _is_integer(value: float) -> bool:
    return abs(value - round(value)) < _EPSILON


@dataclass(frozen=True, slots=True)
class Quantizer:
    """Snaps ticks onto a grid of ``unit`` ticks.

    When disabled, ticks are floored to integers but otherwise left alone.
    Callers clamp negative ticks to 0 before snapping.
    """

    timebase: int = DEFAULT_TIMEBASE
    denominator: float = DEFAULT_QUANTIZE_DENOMINATOR
    enabled: bool = True

    @property
    def unit(self) -> float:
        return self.timebase / self.denominator

    def _line(self, k: int) -> int:
        return math.floor(k * self.unit + _GRID_EPSILON)

    def _floor_index(self, tick: float) -> int:
        k = math.floor(tick / self.unit + _EPSILON)
        while self._line(k) > tick:
            k -= 1
        while self._line(k + 1) <= tick:
            k += 1
        return k

    def _ceil_index(self, tick: float) -> int:
        k = self._floor_index(tick)
        return k if self._line(k) >= tick else k + 1

    def round(self, tick: float) -> int:
        """Nearest grid tick; ties go to the higher multiple."""
        if not self.enabled:
            return math.floor(tick)
        k = self._floor_index(tick)
        below, above = self._line(k), self._line(k + 1)
        return above if above - tick <= tick - below + _EPSILON else below

    def floor(self, tick: float) -> int:
        """Greatest grid tick not exceeding *tick*."""
        if not self.enabled:
            return math.floor(tick)
        return self._line(self._floor_index(tick))

    def ceil(self, tick: float) -> int:
        """Smallest grid tick not below *tick*."""
        if not self.enabled:
            return math.floor(tick)
        return self._line(self._ceil_index(tick))

    def grid_ticks(self, start: int, end: int) -> list[int]:
        """Grid ticks within ``[start, end]``, one ``unit`` apart.

        When disabled they step by ``unit`` from *start* instead.
        """
        u = self.unit
        if end < start or u <= 0:
            return []
        if not self.enabled:
            count = math.floor((end - start) / u + _EPSILON)
            return [math.floor(start + i * u + 0.5) for i in range(count + 1)]
        first = self._ceil_index(start)
        last = self._floor_index(end)
        return [self._line(k) for k in range(first, last + 1)]

    def with_denominator(self, denominator: float) -> Quantizer:
        return Quantizer(self.timebase, denominator, self.enabled)

    def with_enabled(self, enabled: bool) -> Quantizer:
        return Quantizer(self.timebase, self.denominator, enabled)

    @classmethod
    def from_config(cls, config: ConfigManager, timebase: int = DEFAULT_TIMEBASE) -> Quantizer:
        """Build the user's preferred quantizer from ``editor.*`` keys."""
        denominator = effective_denominator(
            int(config.get("editor.quantize_denominator", DEFAULT_QUANTIZE_DENOMINATOR)),
            bool(config.get("editor.dotted", False)),
            bool(config.get("editor.triplet", False)),
        )
        return cls(
            timebase=timebase,
            denominator=denominator,
            enabled=bool(config.get("editor.quantize_enabled", True)),
        )

    def save_to_config(self, config: ConfigManager) -> None:
        base, dotted, triplet = split_denominator(self.denominator)
        config.update({
            "editor.quantize_denominator": base,
            "editor.dotted": dotted,
            "editor.triplet": triplet,
            "editor.quantize_enabled": self.enabled,
        })
