from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import numpy as np
from numpy.typing import DTypeLike, NDArray
from pydantic import BaseModel, ConfigDict, model_validator

from .audio import (
    SAMPLE_RATE,
    FloatArray,
    Int16Array,
    encode_wav,
    ensure_pcm_contract,
    pcm_to_float,
    to_data_uri,
    write_wav,
)
from .errors import PlaybackError
from .params import SfxrParams
from .synth import SfxrSynth

SettingsInput = SfxrParams | Mapping[str, Any] | Sequence[object]

_LOGGER = logging.getLogger("blipsynth.sound")


def coerce_params(settings: SettingsInput) -> SfxrParams:
    match settings:
        case SfxrParams():
            return settings
        case _:
            return SfxrParams.model_validate(settings)


class Sound(BaseModel):
    samples: Int16Array
    params: SfxrParams
    sample_rate: int = SAMPLE_RATE

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    @model_validator(mode="after")
    def _normalize(self) -> "Sound":
        object.__setattr__(self, "samples", ensure_pcm_contract(self.samples))
        return self

    def __len__(self) -> int:
        return int(self.samples.size)

    def __array__(
        self, dtype: DTypeLike | None = None, copy: bool | None = None
    ) -> NDArray[np.generic]:
        array = np.asarray(self.samples, dtype=dtype)
        return array.copy() if copy else array

    @property
    def duration(self) -> float:
        return len(self) / self.sample_rate

    def to_numpy(self) -> Int16Array:
        return self.samples

    def to_float(self) -> FloatArray:
        return pcm_to_float(self.samples)

    def to_wav_bytes(self) -> bytes:
        return encode_wav(self.samples, sample_rate=self.sample_rate)

    @property
    def data_uri(self) -> str:
        return to_data_uri(self.to_wav_bytes())

    def save(self, path: str | Path) -> Path:
        return write_wav(path, self.samples, sample_rate=self.sample_rate)

    def play(self) -> None:
        from .playback import play_audio

        try:
            play_audio(self.to_float(), sample_rate=self.sample_rate)
        except PlaybackError:
            _LOGGER.warning("Playback unavailable for %d samples.", len(self), exc_info=True)
            raise


def render(
    settings: SettingsInput,
    *,
    rng: np.random.Generator | None = None,
) -> Sound:
    """Render one sound effect from a settings vector, mapping or params."""

    params = coerce_params(settings)
    synth = SfxrSynth(params, rng=rng)
    samples = synth.synthesize()
    return Sound(samples=samples, params=params)


def render_data_uri(
    settings: SettingsInput,
    *,
    rng: np.random.Generator | None = None,
) -> str:
    """Render straight to a ``data:audio/wav;base64,`` URI."""

    return render(settings, rng=rng).data_uri
