"""Wave registry and planner exports."""

from .planner import WavePlanner
from .registry import BUILTIN_WAVES, Wave, WaveConfigError, load_waves

__all__ = ["BUILTIN_WAVES", "Wave", "WaveConfigError", "WavePlanner", "load_waves"]
