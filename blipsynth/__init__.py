from __future__ import annotations

from .audio import DATA_URI_PREFIX, SAMPLE_RATE, encode_wav, to_data_uri, wav_header, write_wav
from .errors import BlipSynthError, InvalidSettingsError, PlaybackError
from .logging_utils import configure_logging as _configure_logging
from .params import SETTINGS_FIELDS, SfxrParams, WaveType, normalize
from .presets import get_preset, preset_names
from .sound import Sound, render, render_data_uri
from .synth import EnvelopeStage, SfxrSynth, SynthState

__all__ = [
    "DATA_URI_PREFIX",
    "SAMPLE_RATE",
    "SETTINGS_FIELDS",
    "BlipSynthError",
    "EnvelopeStage",
    "InvalidSettingsError",
    "PlaybackError",
    "SfxrParams",
    "SfxrSynth",
    "Sound",
    "SynthState",
    "WaveType",
    "encode_wav",
    "get_preset",
    "normalize",
    "preset_names",
    "render",
    "render_data_uri",
    "to_data_uri",
    "wav_header",
    "write_wav",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
