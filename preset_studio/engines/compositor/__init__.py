"""
Preset compositor: canvas/shadow primitives and the fixed layout registry.
"""

from preset_studio.engines.compositor.presets import PRESETS, apply_preset, list_presets
from preset_studio.engines.compositor.primitives import (
    allocate_canvas,
    composite,
    synthesize_shadow,
)
from preset_studio.engines.compositor.schemas import (
    NO_BACKGROUND_TAG,
    CompositionLayer,
    Preset,
)

__all__ = [
    "PRESETS",
    "apply_preset",
    "list_presets",
    "allocate_canvas",
    "composite",
    "synthesize_shadow",
    "NO_BACKGROUND_TAG",
    "CompositionLayer",
    "Preset",
]
