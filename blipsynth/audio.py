from __future__ import annotations

import base64
import struct
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Callable, cast

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import InvalidSettingsError

Int16Array = NDArray[np.int16]
FloatArray = NDArray[np.float32]
PcmSamples = Int16Array | Sequence[int]

SAMPLE_RATE = 44_100
CHANNELS = 1
BITS_PER_SAMPLE = 16
BLOCK_ALIGN = CHANNELS * BITS_PER_SAMPLE // 8
HEADER_SIZE = 44
DATA_URI_PREFIX = "data:audio/wav;base64,"

_FORMAT_PCM = 1
_FMT_CHUNK_SIZE = 16


def ensure_pcm_contract(samples: PcmSamples) -> Int16Array:
    """Flatten to little-endian int16, clipping anything out of range."""

    raw = np.asarray(samples).reshape(-1)
    if raw.size == 0:
        return np.zeros(0, dtype="<i2")
    if raw.dtype.kind == "f":
        raw = np.trunc(raw)
    clipped = np.clip(raw, -32768, 32767)
    return clipped.astype("<i2")


def pcm_to_float(samples: PcmSamples) -> FloatArray:
    pcm = ensure_pcm_contract(samples)
    return (pcm.astype(np.float32) / 32767.0).clip(-1.0, 1.0)


def wav_header(sample_count: int, *, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Canonical 44-byte mono 16-bit PCM header for ``sample_count`` samples."""

    data_size = sample_count * BLOCK_ALIGN
    byte_rate = sample_rate * BLOCK_ALIGN
    riff = struct.pack("<4sI4s", b"RIFF", 36 + data_size, b"WAVE")
    fmt = struct.pack(
        "<4sIHHIIHH",
        b"fmt ",
        _FMT_CHUNK_SIZE,
        _FORMAT_PCM,
        CHANNELS,
        sample_rate,
        byte_rate,
        BLOCK_ALIGN,
        BITS_PER_SAMPLE,
    )
    data = struct.pack("<4sI", b"data", data_size)
    return riff + fmt + data


def encode_wav(samples: PcmSamples, *, sample_rate: int = SAMPLE_RATE) -> bytes:
    pcm = ensure_pcm_contract(samples)
    return wav_header(int(pcm.size), sample_rate=sample_rate) + pcm.tobytes()


def to_data_uri(wav_bytes: bytes) -> str:
    return DATA_URI_PREFIX + base64.b64encode(wav_bytes).decode("ascii")


def from_data_uri(uri: str) -> bytes:
    if not uri.startswith(DATA_URI_PREFIX):
        raise InvalidSettingsError("not a base64 WAV data URI")
    return base64.b64decode(uri[len(DATA_URI_PREFIX) :])


def write_wav(
    path: str | Path,
    samples: PcmSamples,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write PCM samples to a 16-bit mono wav file."""

    target = Path(path)
    samples_obj: object = samples
    match samples_obj:
        case str() | bytes():
            raise InvalidSettingsError("samples must be a sequence of PCM integers")
        case np.ndarray() | Sequence():
            pass
        case _:
            raise InvalidSettingsError("samples must be a sequence of PCM integers")

    pcm = ensure_pcm_contract(cast(PcmSamples, samples_obj))
    write_fn = getattr(sf, "write", None)
    assert callable(write_fn)
    write_audio = cast(Callable[..., Any], write_fn)
    # soundfile stubs are incomplete; cast is intentional for type safety.
    write_audio(target, pcm, sample_rate, subtype="PCM_16")  # type: ignore[reportUnknownMemberType]
    return target
