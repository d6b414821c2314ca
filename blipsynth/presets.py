from __future__ import annotations

from collections.abc import Mapping, Sequence
from types import MappingProxyType

from .errors import InvalidSettingsError
from .params import SfxrParams

# Raw settings vectors; ``None`` marks a slot left empty (treated as 0).
PRESET_SETTINGS: Mapping[str, Sequence[float | None]] = MappingProxyType(
    {
        "detection": (
            2, 0.0266, 0.5034, 0.5728, 0.5999, 0.5026, None, -0.0108, -0.4073, None,
            None, None, None, 0.543, 0.7178, 0.7558, None, 0.9082, 0.9809, 0.1312,
            -0.4545, 0.0055, 0.0025, 0.4,
        ),
        "zombie_attack": (
            3, 0.14, 0.31, 0.0939, 0.47, 0.03, 0.0071, -0.1999, 0.34, 0.24,
            0.0685, -0.28, None, 0.0233, -0.0799, None, 0.0104, 0.4403, 0.27, 0.02,
            0.21, 0.12, -0.18, 0.32,
        ),
        "wall_attack": (
            3, None, 0.35, 0.53, 0.2582, 0.1909, None, 0.2963, None, None,
            None, None, None, None, None, None, 0.3, -0.0396, 1, None,
            None, None, None, 0.18,
        ),
        "food": (
            0, None, 0.0878, None, 0.4572, 0.2507, None, 0.2093, None, 0.1437,
            0.3611, None, None, 0.5666, None, None, None, None, 1, None,
            None, None, None, 0.3,
        ),
        "walk": (
            0, 0.34, 0.26, 0.24, 0.23, None, None, 0.1232, 0.1466, 0.24,
            1, 0.9299, None, None, -1, 1, -0.8, -0.04, 0.33, -0.02,
            None, None, -1, 0.36,
        ),
        "exit_level": (
            3, 0.0171, 0.9078, 0.3427, 0.4125, 0.5181, 0.0587, -0.1099, 0.484, 0.0317,
            0.4421, -0.4199, 0.5661, 0.049, 0.0066, 0.2124, -0.8404, -0.1955, 0.3985, -0.0415,
            None, 0.0212, -0.0439, 0.32,
        ),
    }
)


def preset_names() -> list[str]:
    return sorted(PRESET_SETTINGS)


def get_preset(name: str) -> SfxrParams:
    key = name.strip().lower().replace("-", "_")
    try:
        settings = PRESET_SETTINGS[key]
    except KeyError as exc:
        raise InvalidSettingsError(
            f"Unknown preset: {name!r}. Valid: {preset_names()}"
        ) from exc
    return SfxrParams.from_settings(settings)
