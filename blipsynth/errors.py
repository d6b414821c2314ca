from __future__ import annotations


class BlipSynthError(Exception):
    """Base error for the blipsynth library."""


class InvalidSettingsError(BlipSynthError):
    """Raised when settings text or a preset name cannot be resolved."""


class PlaybackError(BlipSynthError):
    """Raised when no audio playback backend is available."""
