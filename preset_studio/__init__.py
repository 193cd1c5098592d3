"""
Preset Studio

Isolates a product photograph from its background and renders it into
one of nine fixed marketing layouts, writing the result as a PNG.
"""

from preset_studio.core.exceptions import (
    PresetStudioError,
    ValidationError,
    UnknownPresetError,
    FetchTimeoutError,
    FetchFailedError,
    FilesystemError,
    BackgroundRemovalError,
    EncodingError,
)
from preset_studio.engines.compositor import Preset
from preset_studio.pipeline.service import (
    ImageProcessingService,
    ImageServiceFactory,
    apply_preset_from_url,
    get_available_presets,
    process_image,
    remove_background_from_url,
)

__version__ = "1.0.0"

__all__ = [
    "PresetStudioError",
    "ValidationError",
    "UnknownPresetError",
    "FetchTimeoutError",
    "FetchFailedError",
    "FilesystemError",
    "BackgroundRemovalError",
    "EncodingError",
    "Preset",
    "ImageProcessingService",
    "ImageServiceFactory",
    "apply_preset_from_url",
    "get_available_presets",
    "process_image",
    "remove_background_from_url",
]
