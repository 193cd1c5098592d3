"""
Preset Compositor

Nine fixed layouts, each a pure function from a subject image to a fully
composed canvas. With ``sw, sh`` the subject's width and height:

=================== ================= =====================================
Preset              Canvas            Layers
=================== ================= =====================================
clean_center        1.6sw x 1.4sh     shadow (+10, +20), subject centered
clean_offset        1.8sw x 1.4sh     subject at (0.15W, centered)
editorial_left      2sw x 1.4sh       subject at (0.15sw, 0.2sh)
editorial_right     2sw x 1.4sh       subject at (0.8sw, 0.2sh)
product_duo_depth   1200 x 900        0.92sw copy at (80, 120), subject at (140, 60)
minimal_motion      1200 x 800        blurred/dimmed copy at (40, 40), subject at (120, 40)
side_by_side        2sw x sh          subject at (0, 0) and (sw, 0)
overlap_left        2sw x sh          subject at (0, 0) and (0.6sw, 0)
overlap_right       2sw x sh          subject at (0, 0) and (0.4sw, 0)
=================== ================= =====================================
"""

from types import MappingProxyType
from typing import Callable, FrozenSet, Mapping, Optional, Union

from PIL import Image

from preset_studio.core.logging import get_logger
from preset_studio.core.metrics import record_composition
from preset_studio.engines.compositor.primitives import (
    allocate_canvas,
    blur,
    composite,
    dim,
    ensure_rgba,
    resize_to_width,
    round_half_up,
    subject_size,
    synthesize_shadow,
)
from preset_studio.engines.compositor.schemas import CompositionLayer, Preset

logger = get_logger(__name__)

PresetFn = Callable[[Image.Image], Image.Image]

DUO_DEPTH_CANVAS = (1200, 900)
MOTION_CANVAS = (1200, 800)
MOTION_BLUR_RADIUS = 2
MOTION_BRIGHTNESS = 0.5


def clean_center(subject: Image.Image) -> Image.Image:
    sw, sh = subject_size(subject)
    W = round_half_up(sw * 1.6)
    H = round_half_up(sh * 1.4)
    shadow = synthesize_shadow(subject)

    return composite(allocate_canvas(W, H), [
        CompositionLayer(
            shadow,
            round_half_up(W / 2 - sw / 2 + 10),
            round_half_up(H / 2 - sh / 2 + 20),
        ),
        CompositionLayer(
            subject,
            round_half_up(W / 2 - sw / 2),
            round_half_up(H / 2 - sh / 2),
        ),
    ])


def clean_offset(subject: Image.Image) -> Image.Image:
    sw, sh = subject_size(subject)
    W = round_half_up(sw * 1.8)
    H = round_half_up(sh * 1.4)

    return composite(allocate_canvas(W, H), [
        CompositionLayer(subject, round_half_up(W * 0.15), round_half_up(H / 2 - sh / 2)),
    ])


def editorial_left(subject: Image.Image) -> Image.Image:
    sw, sh = subject_size(subject)

    return composite(allocate_canvas(sw * 2, round_half_up(sh * 1.4)), [
        CompositionLayer(subject, round_half_up(sw * 0.15), round_half_up(sh * 0.2)),
    ])


def editorial_right(subject: Image.Image) -> Image.Image:
    sw, sh = subject_size(subject)

    return composite(allocate_canvas(sw * 2, round_half_up(sh * 1.4)), [
        CompositionLayer(subject, round_half_up(sw * 0.8), round_half_up(sh * 0.2)),
    ])


def product_duo_depth(subject: Image.Image) -> Image.Image:
    sw, _ = subject_size(subject)
    small = resize_to_width(subject, round_half_up(sw * 0.92))

    return composite(allocate_canvas(*DUO_DEPTH_CANVAS), [
        CompositionLayer(small, 80, 120),
        CompositionLayer(subject, 140, 60),
    ])


def minimal_motion(subject: Image.Image) -> Image.Image:
    subject_size(subject)
    trail = dim(blur(subject, MOTION_BLUR_RADIUS), MOTION_BRIGHTNESS)

    return composite(allocate_canvas(*MOTION_CANVAS), [
        CompositionLayer(trail, 40, 40),
        CompositionLayer(subject, 120, 40),
    ])


def side_by_side(subject: Image.Image) -> Image.Image:
    sw, sh = subject_size(subject)

    return composite(allocate_canvas(sw * 2, sh), [
        CompositionLayer(subject, 0, 0),
        CompositionLayer(subject, sw, 0),
    ])


def overlap_left(subject: Image.Image) -> Image.Image:
    sw, sh = subject_size(subject)

    return composite(allocate_canvas(sw * 2, sh), [
        CompositionLayer(subject, 0, 0),
        CompositionLayer(subject, round_half_up(sw * 0.6), 0),
    ])


def overlap_right(subject: Image.Image) -> Image.Image:
    sw, sh = subject_size(subject)

    return composite(allocate_canvas(sw * 2, sh), [
        CompositionLayer(subject, 0, 0),
        CompositionLayer(subject, round_half_up(sw * 0.4), 0),
    ])


# Process-wide, read-only
PRESETS: Mapping[Preset, PresetFn] = MappingProxyType({
    Preset.CLEAN_CENTER: clean_center,
    Preset.CLEAN_OFFSET: clean_offset,
    Preset.EDITORIAL_LEFT: editorial_left,
    Preset.EDITORIAL_RIGHT: editorial_right,
    Preset.PRODUCT_DUO_DEPTH: product_duo_depth,
    Preset.MINIMAL_MOTION: minimal_motion,
    Preset.SIDE_BY_SIDE: side_by_side,
    Preset.OVERLAP_LEFT: overlap_left,
    Preset.OVERLAP_RIGHT: overlap_right,
})


def list_presets() -> FrozenSet[str]:
    """Names of all registered presets."""
    return frozenset(preset.value for preset in PRESETS)


def apply_preset(preset: Union[Preset, Optional[str]], subject: Image.Image) -> Image.Image:
    """
    Compose ``subject`` into the named layout.

    Raises:
        UnknownPresetError: if ``preset`` is not a registered name
    """
    preset = Preset.parse(preset)
    try:
        canvas = PRESETS[preset](ensure_rgba(subject))
    except Exception:
        record_composition(preset.value, "error")
        raise

    record_composition(preset.value, "success")
    logger.debug(
        "preset_applied",
        preset=preset.value,
        subject=subject.size,
        canvas=canvas.size
    )
    return canvas
