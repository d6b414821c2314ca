from __future__ import annotations

import math

import numpy as np
import pytest

from blipsynth.params import SfxrParams, WaveType, normalize
from blipsynth.presets import get_preset, preset_names
from blipsynth.sound import render_data_uri
from blipsynth.synth import (
    NEXT_STAGE,
    EnvelopeStage,
    SfxrSynth,
    fast_sine,
    period_from_frequency,
    quantize,
    to_int32,
)

# Square wave whose integer period is exactly 400 (50 output samples of 8 sub-samples).
_PERIOD_400_FREQUENCY = math.sqrt(100 / 400.5 - 0.001)

_BUSY_SETTINGS = [
    1, 0.05, 0.2, 0.3, 0.2, 0.4, 0, 0.1, 0.2, 0.3, 0.4, 0.2,
    0.5, 0.3, 0.1, 0.2, 0.3, 0.2, 0.6, 0.1, 0.4, 0.1, 0.05, 0.5,
]


def _example_params(**overrides: float) -> SfxrParams:
    fields: dict[str, float] = {
        "wave_type": WaveType.SQUARE,
        "attack_time": 0.0,
        "sustain_time": 0.3,
        "decay_time": 0.2,
        "start_frequency": 0.5,
        "master_volume": 1.0,
    }
    fields.update(overrides)
    return SfxrParams.model_validate(fields)


def _open_vector(
    wave: int, attack: float, sustain: float, decay: float, start: float
) -> list[float]:
    """Settings with the filters open and full volume."""
    values = [0.0] * 24
    values[0:6] = [wave, attack, sustain, 0.0, decay, start]
    values[18] = 1.0
    values[23] = 1.0
    return values


def _render(params: SfxrParams, *, seed: int = 0) -> np.ndarray:
    return SfxrSynth(params, rng=np.random.default_rng(seed)).synthesize()


def test_fast_sine_tracks_sine() -> None:
    for step in range(200):
        position = step / 200
        assert abs(fast_sine(position) - math.sin(2 * math.pi * position)) < 0.002


def test_fast_sine_keeps_polynomial_form() -> None:
    x = 0.1 * 6.28318531
    expected = 1.27323954 * x - 0.405284735 * x * x
    expected = 0.225 * (expected * expected - expected) + expected
    assert fast_sine(0.1) == expected
    assert fast_sine(0.25) == pytest.approx(1.0)
    assert fast_sine(0.75) == pytest.approx(-1.0)


def test_quantize_truncates_and_clips() -> None:
    assert quantize(0.5) == 16383
    assert quantize(-0.5) == -16383
    assert quantize(1.0) == 32767
    assert quantize(3.0) == 32767
    assert quantize(-1.0) == -32768
    assert quantize(-7.0) == -32768


def test_quantize_maps_nan_to_silence() -> None:
    assert quantize(math.nan) == 0


def test_to_int32_truncates_and_wraps() -> None:
    assert to_int32(1.9) == 1
    assert to_int32(-1.9) == -1
    assert to_int32(2.0**31) == -(2**31)
    assert to_int32(2.0**32 + 5) == 5
    assert to_int32(math.inf) == 0
    assert to_int32(-math.inf) == 0
    assert to_int32(math.nan) == 0


def test_period_formula() -> None:
    assert period_from_frequency(0.0) == pytest.approx(100_000)
    assert period_from_frequency(0.5) == pytest.approx(100 / 0.251)


def test_envelope_transitions_only_move_forward() -> None:
    assert NEXT_STAGE[EnvelopeStage.ATTACK] is EnvelopeStage.SUSTAIN
    assert NEXT_STAGE[EnvelopeStage.SUSTAIN] is EnvelopeStage.DECAY
    assert NEXT_STAGE[EnvelopeStage.DECAY] is EnvelopeStage.FINISHED
    assert NEXT_STAGE[EnvelopeStage.FINISHED] is EnvelopeStage.FINISHED


def test_total_reset_example_length() -> None:
    synth = SfxrSynth(_example_params())
    assert synth.total_reset() == 13011
    assert synth.state.envelope_lengths[2] == pytest.approx(4012)


def test_total_reset_is_a_non_negative_multiple_of_three() -> None:
    rng = np.random.default_rng(1234)
    for _ in range(200):
        values = rng.uniform(-1.0, 1.0, 24).tolist()
        values[0] = int(rng.integers(0, 4))
        length = SfxrSynth(normalize(values)).total_reset()
        assert length >= 0
        assert length % 3 == 0


def test_example_fills_the_whole_buffer() -> None:
    synth = SfxrSynth(_example_params())
    length = synth.total_reset()
    buffer = np.zeros(length, dtype=np.int16)
    assert synth.render(buffer, length) == length
    assert not synth.state.finished


def test_closed_low_pass_silences_output() -> None:
    samples = _render(_example_params())
    assert samples.size == 13011
    assert not samples.any()


def test_render_respects_max_length() -> None:
    for name in ("food", "walk", "wall_attack"):
        synth = SfxrSynth(get_preset(name), rng=np.random.default_rng(0))
        synth.total_reset()
        buffer = [0] * 120
        written = synth.render(buffer, 100)
        assert written <= 100
        assert buffer[100:] == [0] * 20


def test_render_accepts_zero_length() -> None:
    synth = SfxrSynth(_example_params())
    synth.total_reset()
    assert synth.render([], 0) == 0


def test_square_wave_is_periodic() -> None:
    params = _example_params(start_frequency=_PERIOD_400_FREQUENCY, lp_filter_cutoff=1.0)
    samples = _render(params)
    assert samples.size == 13011

    sustain = samples[:8900].astype(int)
    assert np.array_equal(sustain[:-50], sustain[50:])

    period = sustain[:50]
    assert sorted(set(period.tolist())) == [-16383, -12287, 12287, 16383]
    assert (period == 16383).sum() == 24
    assert (period == -16383).sum() == 24
    assert period.sum() == 0
    assert np.all(period[:24] == 16383)


def test_min_frequency_stops_the_sound() -> None:
    params = _example_params(start_frequency=0.35, min_frequency=0.3, slide=-0.5)
    synth = SfxrSynth(params)
    length = synth.total_reset()
    buffer = np.zeros(length, dtype=np.int16)
    written = synth.render(buffer, length)
    assert 0 < written < length
    assert synth.state.finished
    assert synth.state.period == pytest.approx(period_from_frequency(0.3))


def test_envelope_reaches_finished() -> None:
    params = normalize(_open_vector(0, 0.1, 0.1, 0.1, 0.4))
    synth = SfxrSynth(params)
    length = synth.total_reset()
    buffer = np.zeros(4000, dtype=np.int16)
    written = synth.render(buffer, 4000)
    assert length < written < 4000
    assert synth.state.envelope_stage is EnvelopeStage.FINISHED
    assert synth.state.finished
    assert buffer[written - 1] == 0
    assert not buffer[written:].any()


def test_attack_ramps_up_from_silence() -> None:
    params = normalize(_open_vector(1, 0.2, 0.3, 0.2, 0.3))
    samples = _render(params)
    early = np.abs(samples[:200].astype(int)).max()
    late = np.abs(samples[3000:3200].astype(int)).max()
    assert early < late


def test_non_noise_renders_are_deterministic() -> None:
    params = normalize(_BUSY_SETTINGS)
    first = SfxrSynth(params).synthesize()
    second = SfxrSynth(params).synthesize()
    assert first.size > 0
    assert first.tobytes() == second.tobytes()


def test_reset_engine_can_render_again() -> None:
    synth = SfxrSynth(normalize(_BUSY_SETTINGS))
    first = synth.synthesize()
    second = synth.synthesize()
    assert first.tobytes() == second.tobytes()


def test_noise_follows_injected_rng() -> None:
    params = normalize(_open_vector(3, 0.0, 0.2, 0.1, 0.6))
    first = SfxrSynth(params, rng=np.random.default_rng(7)).synthesize()
    second = SfxrSynth(params, rng=np.random.default_rng(7)).synthesize()
    other = SfxrSynth(params, rng=np.random.default_rng(8)).synthesize()
    assert np.array_equal(first, second)
    assert not np.array_equal(first, other)


def test_repeat_retriggers_reset() -> None:
    params = _example_params(repeat_speed=0.75, lp_filter_cutoff=1.0)
    synth = SfxrSynth(params)
    synth.total_reset()
    calls: list[int] = []
    real_reset = synth.reset

    def counting_reset() -> None:
        calls.append(1)
        real_reset()

    synth.reset = counting_reset  # type: ignore[method-assign]
    synth.render([0] * 3000, 3000)
    assert synth.state.repeat_limit == 1282
    assert len(calls) == 2


def test_pitch_change_is_immediate_at_full_speed() -> None:
    params = _example_params(change_amount=0.5, change_speed=1.0)
    synth = SfxrSynth(params)
    synth.total_reset()
    synth.render([0], 1)
    assert synth.state.change_limit == 0
    assert synth.state.period == pytest.approx(period_from_frequency(0.5) * 0.775)


def test_pitch_change_waits_for_its_limit() -> None:
    params = _example_params(change_amount=-0.5, change_speed=0.5)
    synth = SfxrSynth(params)
    synth.total_reset()
    assert synth.state.change_limit == pytest.approx(5032)
    assert synth.state.change_amount == pytest.approx(3.5)
    synth.render([0] * 5031, 5031)
    assert synth.state.period == pytest.approx(period_from_frequency(0.5))
    synth.render([0], 1)
    assert synth.state.period == pytest.approx(period_from_frequency(0.5) * 3.5)


def test_duty_sweep_is_clamped() -> None:
    synth = SfxrSynth(_example_params(square_duty=0.2, duty_sweep=1.0, lp_filter_cutoff=1.0))
    synth.total_reset()
    assert synth.state.square_duty == pytest.approx(0.4)
    synth.render([0] * 9000, 9000)
    assert synth.state.square_duty == 0.0


def test_phaser_offset_is_clamped() -> None:
    synth = SfxrSynth(_example_params(phaser_offset=1.0, phaser_sweep=1.0, lp_filter_cutoff=1.0))
    synth.total_reset()
    synth.render([0] * 100, 100)
    assert synth.state.phaser_on
    assert synth.state.phaser_int == 1023

    negative = SfxrSynth(_example_params(phaser_offset=-0.5, lp_filter_cutoff=1.0))
    negative.total_reset()
    negative.render([0] * 10, 10)
    assert negative.state.phaser_int == 255


def test_high_pass_cutoff_is_clamped() -> None:
    rising = SfxrSynth(_example_params(hp_filter_cutoff=1.0, hp_filter_cutoff_sweep=1.0))
    rising.total_reset()
    rising.render([0] * 10, 10)
    assert rising.state.hp_filter_cutoff == 0.1

    falling = SfxrSynth(_example_params(hp_filter_cutoff=0.01, hp_filter_cutoff_sweep=-1.0))
    falling.total_reset()
    falling.render([0] * 10, 10)
    assert falling.state.hp_filter_cutoff == 0.00001


def test_low_pass_damping_is_capped() -> None:
    synth = SfxrSynth(_example_params(lp_filter_cutoff=1.2))
    synth.total_reset()
    synth.render([0], 1)
    assert synth.state.lp_filter_damping == pytest.approx(0.2)
    assert synth.state.lp_filter_on

    open_filter = SfxrSynth(_example_params(lp_filter_cutoff=0.9))
    open_filter.total_reset()
    open_filter.render([0], 1)
    assert open_filter.state.lp_filter_damping == pytest.approx(1 - 5 * (0.01 + 0.0729))


@pytest.mark.parametrize("name", preset_names())
def test_preset_samples_fit_in_sixteen_bits(name: str) -> None:
    synth = SfxrSynth(get_preset(name), rng=np.random.default_rng(0))
    length = synth.total_reset()
    buffer = np.zeros(length, dtype=np.int64)
    written = synth.render(buffer, length)
    assert 0 < written <= length
    assert buffer.min() >= -32768
    assert buffer.max() <= 32767
    assert buffer[:written].any()


@pytest.mark.parametrize(
    "overrides",
    [
        {"phaser_sweep": 1e103},
        {"repeat_speed": 1e200},
        {"attack_time": 1e200},
        {"lp_filter_cutoff": 1e103, "lp_filter_resonance": 1e200},
        {"vibrato_depth": 0.5, "vibrato_speed": 1e200},
    ],
)
def test_huge_finite_settings_still_render(overrides: dict[str, float]) -> None:
    params = _example_params(**{"lp_filter_cutoff": 1.0, **overrides})
    uri = render_data_uri(params, rng=np.random.default_rng(0))
    assert uri.startswith("data:audio/wav;base64,")


def test_huge_attack_gives_an_empty_sound() -> None:
    synth = SfxrSynth(_example_params(attack_time=1e200))
    assert synth.total_reset() == 0


def test_nan_damping_renders_silence() -> None:
    params = _example_params(lp_filter_cutoff=1e103, lp_filter_resonance=1e200)
    samples = _render(params)
    assert samples.size == 13011
    assert not samples.any()
