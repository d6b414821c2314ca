"""
Sample generator for sfxr-style sound effects.

The engine runs one sample at a time through:

1. Pitch: repeat retrigger, one-shot pitch change, slide, vibrato
2. Envelope: attack, sustain (with punch), decay
3. Oscillator: 8x oversampled square/sawtooth/sine/noise
4. Effects: resonant low-pass, high-pass, phaser comb
5. Output: average, volume, clip, 16-bit quantize

All arithmetic stays in Python floats so renders are reproducible
bit-for-bit outside the noise path.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, MutableSequence
from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import TypeAlias

import numpy as np
from numpy.typing import NDArray

from .params import SfxrParams, WaveType

_LOGGER = logging.getLogger("blipsynth.synth")

# =============================================================================
# CONSTANTS
# =============================================================================

OVERSAMPLING = 8
PHASER_BUFFER_SIZE = 1024
NOISE_BUFFER_SIZE = 32
MIN_PERIOD = 8
MAX_PHASER_OFFSET = PHASER_BUFFER_SIZE - 1
ENVELOPE_SCALE = 100_000
DECAY_TAIL = 12

PCM_MAX = 32767
PCM_MIN = -32768

Int16Array: TypeAlias = NDArray[np.int16]
SampleBuffer: TypeAlias = MutableSequence[int] | Int16Array


class EnvelopeStage(IntEnum):
    ATTACK = 0
    SUSTAIN = 1
    DECAY = 2
    FINISHED = 3


NEXT_STAGE: Mapping[EnvelopeStage, EnvelopeStage] = MappingProxyType(
    {
        EnvelopeStage.ATTACK: EnvelopeStage.SUSTAIN,
        EnvelopeStage.SUSTAIN: EnvelopeStage.DECAY,
        EnvelopeStage.DECAY: EnvelopeStage.FINISHED,
        EnvelopeStage.FINISHED: EnvelopeStage.FINISHED,
    }
)


def to_int32(value: float) -> int:
    """Truncate toward zero and wrap to a signed 32-bit integer; non-finite gives 0."""

    if not math.isfinite(value):
        return 0
    wrapped = int(value) & 0xFFFFFFFF
    return wrapped - 0x1_0000_0000 if wrapped & 0x8000_0000 else wrapped


def period_from_frequency(frequency: float) -> float:
    return 100 / (frequency * frequency + 0.001)


def fast_sine(position: float) -> float:
    """Parabolic sine approximation over one cycle, ``position`` in [0, 1)."""

    x = (position - 1 if position > 0.5 else position) * 6.28318531
    sample = 1.27323954 * x + 0.405284735 * x * x * (1 if x < 0 else -1)
    return 0.225 * ((-1 if sample < 0 else 1) * sample * sample - sample) + sample


def quantize(sample: float) -> int:
    if sample >= 1:
        return PCM_MAX
    if sample <= -1:
        return PCM_MIN
    return to_int32(sample * PCM_MAX)


# =============================================================================
# ENGINE STATE
# =============================================================================


@dataclass(slots=True)
class SynthState:
    """Running variables of one engine; never shared between renders."""

    # Pitch (rebuilt by reset)
    period: float = 0.0
    max_period: float = 0.0
    slide: float = 0.0
    delta_slide: float = 0.0
    change_amount: float = 0.0
    change_time: int = 0
    change_limit: float = 0.0
    square_duty: float = 0.0
    duty_sweep: float = 0.0

    # Envelope (sized by total_reset)
    envelope_lengths: tuple[float, float, float] = (0.0, 0.0, 0.0)
    envelope_reciprocals: tuple[float, float, float] = (0.0, 0.0, 0.0)
    envelope_length: float = 0.0
    envelope_stage: EnvelopeStage = EnvelopeStage.ATTACK
    envelope_time: int = 0
    envelope_volume: float = 0.0

    # Modulation
    repeat_limit: int = 0
    repeat_time: int = 0
    vibrato_amplitude: float = 0.0
    vibrato_speed: float = 0.0
    vibrato_phase: float = 0.0

    # Filters
    filters_on: bool = False
    lp_filter_on: bool = False
    lp_filter_cutoff: float = 0.0
    lp_filter_delta_cutoff: float = 0.0
    lp_filter_damping: float = 0.0
    lp_filter_pos: float = 0.0
    lp_filter_old_pos: float = 0.0
    lp_filter_delta_pos: float = 0.0
    hp_filter_cutoff: float = 0.0
    hp_filter_delta_cutoff: float = 0.0
    hp_filter_pos: float = 0.0

    # Phaser
    phaser_on: bool = False
    phaser_offset: float = 0.0
    phaser_delta_offset: float = 0.0
    phaser_int: int = 0
    phaser_pos: int = 0
    phaser_buffer: list[float] = field(default_factory=lambda: [0.0] * PHASER_BUFFER_SIZE)

    # Oscillator
    phase: int = 0
    period_temp: int = MIN_PERIOD
    noise_buffer: list[float] = field(default_factory=lambda: [0.0] * NOISE_BUFFER_SIZE)

    finished: bool = False


# =============================================================================
# ENGINE
# =============================================================================


class SfxrSynth:
    """Stateful sound generator driven by one :class:`SfxrParams`.

    Lifecycle: ``total_reset()`` sizes the sound, ``render()`` fills a
    buffer. ``reset()`` is also called mid-render by the repeat effect.
    An instance must not be rendered from two call sites at once.
    """

    def __init__(
        self,
        params: SfxrParams | None = None,
        *,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.params = params or SfxrParams()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.state = SynthState()

    def reset(self) -> None:
        """Rebuild the pitch, duty and pitch-change state from the params."""

        p = self.params
        st = self.state

        st.period = period_from_frequency(p.start_frequency)
        st.max_period = period_from_frequency(p.min_frequency)

        st.slide = 1 - p.slide * p.slide * p.slide * 0.01
        st.delta_slide = -p.delta_slide * p.delta_slide * p.delta_slide * 0.000001

        if p.wave_type is WaveType.SQUARE:
            st.square_duty = 0.5 - p.square_duty / 2
            st.duty_sweep = -p.duty_sweep * 0.00005

        amount = p.change_amount
        st.change_amount = 1 + amount * amount * (-0.9 if amount > 0 else 10)
        st.change_time = 0
        if p.change_speed == 1:
            # Fires on the first counted sample.
            st.change_limit = 1
        else:
            st.change_limit = (1 - p.change_speed) * (1 - p.change_speed) * 20000 + 32

    def total_reset(self) -> int:
        """Reset and size the envelope; returns the sample count (a multiple of 3)."""

        self.reset()
        p = self.params
        st = self.state

        lengths = (
            p.attack_time * p.attack_time * ENVELOPE_SCALE,
            p.sustain_time * p.sustain_time * ENVELOPE_SCALE,
            p.decay_time * p.decay_time * ENVELOPE_SCALE + DECAY_TAIL,
        )
        st.envelope_lengths = lengths
        # A zero-length stage is left on its first sample, before its volume is read.
        st.envelope_reciprocals = (
            1 / lengths[0] if lengths[0] else 0.0,
            1 / lengths[1] if lengths[1] else 0.0,
            1 / lengths[2],
        )
        return max(to_int32(sum(lengths) / 3), 0) * 3

    def _begin_render(self) -> None:
        p = self.params
        st = self.state

        st.filters_on = p.lp_filter_cutoff != 1 or bool(p.hp_filter_cutoff)
        st.lp_filter_on = p.lp_filter_cutoff != 1
        st.lp_filter_cutoff = p.lp_filter_cutoff * p.lp_filter_cutoff * p.lp_filter_cutoff * 0.1
        st.lp_filter_delta_cutoff = 1 + p.lp_filter_cutoff_sweep * 0.0001
        st.hp_filter_cutoff = p.hp_filter_cutoff * p.hp_filter_cutoff * 0.1
        st.hp_filter_delta_cutoff = 1 + p.hp_filter_cutoff_sweep * 0.0003

        resonance = p.lp_filter_resonance
        damping = 5 / (1 + resonance * resonance * 20) * (0.01 + st.lp_filter_cutoff)
        if damping > 0.8:
            damping = 0.8
        st.lp_filter_damping = 1 - damping

        st.phaser_on = bool(p.phaser_offset or p.phaser_sweep)
        st.phaser_delta_offset = p.phaser_sweep * p.phaser_sweep * p.phaser_sweep * 0.2
        offset = p.phaser_offset
        st.phaser_offset = offset * offset * (-1020 if offset < 0 else 1020)

        if p.repeat_speed:
            st.repeat_limit = to_int32((1 - p.repeat_speed) * (1 - p.repeat_speed) * 20000) + 32
        else:
            st.repeat_limit = 0
        st.vibrato_amplitude = p.vibrato_depth / 2
        st.vibrato_speed = p.vibrato_speed * p.vibrato_speed * 0.01

        st.finished = False
        st.envelope_stage = EnvelopeStage.ATTACK
        st.envelope_length = st.envelope_lengths[EnvelopeStage.ATTACK]
        st.envelope_time = 0
        st.envelope_volume = 0.0
        st.hp_filter_pos = 0.0
        st.lp_filter_pos = 0.0
        st.lp_filter_old_pos = 0.0
        st.lp_filter_delta_pos = 0.0
        st.phase = 0
        st.phaser_int = 0
        st.phaser_pos = 0
        st.repeat_time = 0
        st.vibrato_phase = 0.0
        st.phaser_buffer = [0.0] * PHASER_BUFFER_SIZE
        st.noise_buffer = self._fresh_noise()

    def _fresh_noise(self) -> list[float]:
        return self.rng.uniform(-1.0, 1.0, NOISE_BUFFER_SIZE).tolist()

    def render(self, buffer: SampleBuffer, length: int) -> int:
        """Write up to ``length`` PCM samples into ``buffer``.

        Returns the number of samples written, which is smaller than
        ``length`` when the envelope finishes or the pitch falls below
        ``min_frequency``.
        """

        self._begin_render()
        p = self.params
        master_gain = p.master_volume * p.master_volume

        written = length
        for i in range(length):
            if self.state.finished:
                written = i
                break
            self._advance()
            super_sample = self._oversample()
            buffer[i] = quantize(super_sample * 0.125 * self.state.envelope_volume * master_gain)

        _LOGGER.debug(
            "Rendered %d/%d samples (wave=%s, stage=%s)",
            written,
            length,
            p.wave_type.name.lower(),
            self.state.envelope_stage.name.lower(),
        )
        return written

    def synthesize(self) -> Int16Array:
        """Size, allocate and render one complete sound."""

        length = self.total_reset()
        buffer: Int16Array = np.zeros(length, dtype=np.int16)
        written = self.render(buffer, length)
        return buffer[:written]

    def _advance(self) -> None:
        p = self.params
        st = self.state

        if st.repeat_limit:
            st.repeat_time += 1
            if st.repeat_time >= st.repeat_limit:
                st.repeat_time = 0
                self.reset()

        if st.change_limit:
            st.change_time += 1
            if st.change_time >= st.change_limit:
                st.change_limit = 0
                st.period *= st.change_amount

        st.slide += st.delta_slide
        st.period *= st.slide

        if st.period > st.max_period:
            st.period = st.max_period
            if p.min_frequency > 0:
                st.finished = True

        period_temp = st.period
        if st.vibrato_amplitude > 0:
            st.vibrato_phase += st.vibrato_speed
            if math.isfinite(st.vibrato_phase):
                period_temp *= 1 + math.sin(st.vibrato_phase) * st.vibrato_amplitude
            else:
                period_temp = math.nan

        st.period_temp = max(to_int32(period_temp), MIN_PERIOD)

        if p.wave_type is WaveType.SQUARE:
            st.square_duty += st.duty_sweep
            if st.square_duty < 0:
                st.square_duty = 0.0
            elif st.square_duty > 0.5:
                st.square_duty = 0.5

        st.envelope_time += 1
        if st.envelope_time > st.envelope_length:
            st.envelope_time = 0
            st.envelope_stage = NEXT_STAGE[st.envelope_stage]
            if st.envelope_stage is not EnvelopeStage.FINISHED:
                st.envelope_length = st.envelope_lengths[st.envelope_stage]

        match st.envelope_stage:
            case EnvelopeStage.ATTACK:
                st.envelope_volume = st.envelope_time * st.envelope_reciprocals[0]
            case EnvelopeStage.SUSTAIN:
                st.envelope_volume = (
                    1 + (1 - st.envelope_time * st.envelope_reciprocals[1]) * 2 * p.sustain_punch
                )
            case EnvelopeStage.DECAY:
                st.envelope_volume = 1 - st.envelope_time * st.envelope_reciprocals[2]
            case EnvelopeStage.FINISHED:
                st.envelope_volume = 0.0
                st.finished = True

        if st.phaser_on:
            st.phaser_offset += st.phaser_delta_offset
            st.phaser_int = min(abs(to_int32(st.phaser_offset)), MAX_PHASER_OFFSET)

        if st.filters_on and st.hp_filter_delta_cutoff:
            st.hp_filter_cutoff *= st.hp_filter_delta_cutoff
            if st.hp_filter_cutoff < 0.00001:
                st.hp_filter_cutoff = 0.00001
            elif st.hp_filter_cutoff > 0.1:
                st.hp_filter_cutoff = 0.1

    def _oversample(self) -> float:
        """Sum of the oscillator, filter and phaser over the sub-samples."""

        st = self.state
        wave_type = self.params.wave_type
        period_temp = st.period_temp
        square_duty = st.square_duty
        phase = st.phase
        noise_buffer = st.noise_buffer

        filters_on = st.filters_on
        lp_filter_on = st.lp_filter_on
        lp_cutoff = st.lp_filter_cutoff
        lp_delta_cutoff = st.lp_filter_delta_cutoff
        lp_damping = st.lp_filter_damping
        lp_pos = st.lp_filter_pos
        lp_delta_pos = st.lp_filter_delta_pos
        lp_old_pos = st.lp_filter_old_pos
        hp_cutoff = st.hp_filter_cutoff
        hp_pos = st.hp_filter_pos

        phaser_on = st.phaser_on
        phaser_buffer = st.phaser_buffer
        phaser_int = st.phaser_int
        phaser_pos = st.phaser_pos

        super_sample = 0.0
        for _ in range(OVERSAMPLING):
            phase += 1
            if phase >= period_temp:
                phase %= period_temp
                if wave_type is WaveType.NOISE:
                    noise_buffer = self._fresh_noise()

            match wave_type:
                case WaveType.SQUARE:
                    sample = 0.5 if phase / period_temp < square_duty else -0.5
                case WaveType.SAWTOOTH:
                    sample = 1 - phase / period_temp * 2
                case WaveType.SINE:
                    sample = fast_sine(phase / period_temp)
                case WaveType.NOISE:
                    sample = noise_buffer[abs(int(phase * NOISE_BUFFER_SIZE / period_temp))]

            if filters_on:
                lp_old_pos = lp_pos
                lp_cutoff *= lp_delta_cutoff
                if lp_cutoff < 0:
                    lp_cutoff = 0.0
                elif lp_cutoff > 0.1:
                    lp_cutoff = 0.1

                if lp_filter_on:
                    lp_delta_pos += (sample - lp_pos) * lp_cutoff
                    lp_delta_pos *= lp_damping
                else:
                    lp_pos = sample
                    lp_delta_pos = 0.0

                lp_pos += lp_delta_pos

                hp_pos += lp_pos - lp_old_pos
                hp_pos *= 1 - hp_cutoff
                sample = hp_pos

            if phaser_on:
                phaser_buffer[phaser_pos % PHASER_BUFFER_SIZE] = sample
                sample += phaser_buffer[
                    (phaser_pos - phaser_int + PHASER_BUFFER_SIZE) % PHASER_BUFFER_SIZE
                ]
                phaser_pos += 1

            super_sample += sample

        st.phase = phase
        st.noise_buffer = noise_buffer
        st.lp_filter_cutoff = lp_cutoff
        st.lp_filter_pos = lp_pos
        st.lp_filter_delta_pos = lp_delta_pos
        st.lp_filter_old_pos = lp_old_pos
        st.hp_filter_pos = hp_pos
        st.phaser_pos = phaser_pos
        return super_sample
