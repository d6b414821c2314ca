from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from enum import IntEnum
from typing import Any, cast

import numpy as np
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

_LOGGER = logging.getLogger("blipsynth.params")

SETTINGS_LENGTH = 24
MIN_SUSTAIN_TIME = 0.01
MIN_ENVELOPE_TIME = 0.18


class WaveType(IntEnum):
    SQUARE = 0
    SAWTOOTH = 1
    SINE = 2
    NOISE = 3


# Order of the compact settings vector.
SETTINGS_FIELDS: tuple[str, ...] = (
    "wave_type",
    "attack_time",
    "sustain_time",
    "sustain_punch",
    "decay_time",
    "start_frequency",
    "min_frequency",
    "slide",
    "delta_slide",
    "vibrato_depth",
    "vibrato_speed",
    "change_amount",
    "change_speed",
    "square_duty",
    "duty_sweep",
    "repeat_speed",
    "phaser_offset",
    "phaser_sweep",
    "lp_filter_cutoff",
    "lp_filter_cutoff_sweep",
    "lp_filter_resonance",
    "hp_filter_cutoff",
    "hp_filter_cutoff_sweep",
    "master_volume",
)
_FLOAT_FIELDS = SETTINGS_FIELDS[1:]


def coerce_number(value: object) -> float:
    """Lenient numeric coercion: anything unusable becomes 0.0."""

    match value:
        case bool():
            return 1.0 if value else 0.0
        case int() | float() | np.integer() | np.floating():
            number = float(value)
        case str():
            try:
                number = float(value.strip())
            except ValueError:
                return 0.0
        case _:
            return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


class SfxrParams(BaseModel):
    """The 24 sound parameters, normalized on construction.

    Values are nominally in [0, 1] (signed fields in [-1, 1]) but are never
    range-checked; out-of-range numbers flow through to the engine as-is.
    """

    wave_type: WaveType = WaveType.SQUARE
    attack_time: float = 0.0
    sustain_time: float = 0.0
    sustain_punch: float = 0.0
    decay_time: float = 0.0
    start_frequency: float = 0.0
    min_frequency: float = 0.0
    slide: float = 0.0
    delta_slide: float = 0.0
    vibrato_depth: float = 0.0
    vibrato_speed: float = 0.0
    change_amount: float = 0.0
    change_speed: float = 0.0
    square_duty: float = 0.0
    duty_sweep: float = 0.0
    repeat_speed: float = 0.0
    phaser_offset: float = 0.0
    phaser_sweep: float = 0.0
    lp_filter_cutoff: float = 0.0
    lp_filter_cutoff_sweep: float = 0.0
    lp_filter_resonance: float = 0.0
    hp_filter_cutoff: float = 0.0
    hp_filter_cutoff_sweep: float = 0.0
    master_volume: float = 0.0

    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _expand_settings(cls, data: object) -> object:
        match data:
            case str() | bytes():
                return data
            case Mapping():
                return data
            case Sequence() | np.ndarray():
                values = list(cast(Sequence[Any], data))[:SETTINGS_LENGTH]
                return {name: value for name, value in zip(SETTINGS_FIELDS, values)}
            case _:
                return data

    @field_validator("wave_type", mode="before")
    @classmethod
    def _coerce_wave_type(cls, value: object) -> WaveType:
        number = int(coerce_number(value))
        try:
            return WaveType(number)
        except ValueError:
            _LOGGER.debug("Unknown wave type %r; using square.", value)
            return WaveType.SQUARE

    @field_validator(*_FLOAT_FIELDS, mode="before")
    @classmethod
    def _coerce_float(cls, value: object) -> float:
        return coerce_number(value)

    @model_validator(mode="after")
    def _stretch_envelope(self) -> "SfxrParams":
        sustain = max(self.sustain_time, MIN_SUSTAIN_TIME)
        attack = self.attack_time
        decay = self.decay_time
        total = attack + sustain + decay
        if total < MIN_ENVELOPE_TIME and total != 0:
            multiplier = MIN_ENVELOPE_TIME / total
            attack *= multiplier
            sustain *= multiplier
            decay *= multiplier
        object.__setattr__(self, "attack_time", attack)
        object.__setattr__(self, "sustain_time", sustain)
        object.__setattr__(self, "decay_time", decay)
        return self

    @classmethod
    def from_settings(cls, values: Sequence[object]) -> "SfxrParams":
        """Build params from a positional settings vector (zero padded)."""
        return cls.model_validate(list(values))

    def to_settings(self) -> list[float]:
        return [float(getattr(self, name)) for name in SETTINGS_FIELDS]

    @property
    def envelope_time(self) -> float:
        return self.attack_time + self.sustain_time + self.decay_time


def normalize(values: Sequence[object]) -> SfxrParams:
    return SfxrParams.from_settings(values)
