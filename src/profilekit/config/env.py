"""Environment variable loaders for configuration."""

from __future__ import annotations

import math
import os

from .errors import InvalidConfigurationError


def _read(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def env_float(
    name: str,
    default: float,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    """Return ``name`` as a float, or ``default`` when unset or blank."""

    raw = _read(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise InvalidConfigurationError(name, raw, "expected a number") from None
    _check_bounds(name, raw, value, minimum=minimum, maximum=maximum)
    return value


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = _read(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidConfigurationError(name, raw, "expected an integer") from None
    _check_bounds(name, raw, value, minimum=minimum, maximum=None)
    return value


def env_weights(
    name: str,
    *,
    minimum: float | None = 0.0,
    maximum: float | None = None,
) -> dict[str, float]:
    """Parse ``"contact=1.0,device=0.5"`` into a mapping; unset means empty."""

    raw = _read(name)
    if raw is None:
        return {}

    weights: dict[str, float] = {}
    for item in raw.split(","):
        if not item.strip():
            continue
        key, sep, number = item.partition("=")
        key = key.strip()
        if not sep or not key:
            raise InvalidConfigurationError(name, raw, f"expected key=value, got {item.strip()!r}")
        try:
            value = float(number)
        except ValueError:
            raise InvalidConfigurationError(
                name, raw, f"expected a number for {key}, got {number.strip()!r}"
            ) from None
        _check_bounds(name, raw, value, minimum=minimum, maximum=maximum)
        weights[key] = value
    return weights


def _check_bounds(
    name: str,
    raw: str,
    value: float,
    *,
    minimum: float | None,
    maximum: float | None,
) -> None:
    if not math.isfinite(value):
        raise InvalidConfigurationError(name, raw, "must be a finite number")
    if minimum is not None and value < minimum:
        raise InvalidConfigurationError(name, raw, f"must be at least {minimum}")
    if maximum is not None and value > maximum:
        raise InvalidConfigurationError(name, raw, f"must be at most {maximum}")
