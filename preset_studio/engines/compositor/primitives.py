"""
Canvas & Shadow Primitives

Every buffer is a Pillow ``RGBA`` image. Functions here never mutate their
inputs; each returns a new image.
"""

import math
from typing import Iterable, Tuple

import numpy as np
from PIL import Image, ImageFilter

from preset_studio.core.exceptions import EncodingError
from preset_studio.core.logging import get_logger
from preset_studio.engines.compositor.schemas import CompositionLayer

logger = get_logger(__name__)

DEFAULT_SHADOW_OPACITY = 0.15
DEFAULT_SHADOW_BLUR = 25

TRANSPARENT = (0, 0, 0, 0)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ``.5`` going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def subject_size(image: Image.Image) -> Tuple[int, int]:
    """Read a subject's intrinsic (width, height), failing on a missing dimension."""
    width, height = image.size
    if not width or not height:
        raise EncodingError(
            f"Subject image has no usable dimensions: {width}x{height}",
            details={"width": width, "height": height}
        )
    return width, height


def ensure_rgba(image: Image.Image) -> Image.Image:
    if image.mode == "RGBA":
        return image
    return image.convert("RGBA")


def allocate_canvas(width: int, height: int) -> Image.Image:
    """Return a fully transparent RGBA surface of exactly ``width`` x ``height``."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Canvas dimensions must be positive, got {width}x{height}")
    return Image.new("RGBA", (int(width), int(height)), TRANSPARENT)


def blur(image: Image.Image, radius: float) -> Image.Image:
    """Gaussian blur. Dimensions are preserved; edges are extended."""
    image = ensure_rgba(image)
    if radius <= 0:
        return image.copy()
    return image.filter(ImageFilter.GaussianBlur(radius))


def dim(image: Image.Image, brightness: float) -> Image.Image:
    """Scale colour channels by ``brightness``, leaving alpha untouched."""
    pixels = np.asarray(ensure_rgba(image), dtype=np.float64).copy()
    pixels[..., :3] = np.clip(np.floor(pixels[..., :3] * brightness + 0.5), 0, 255)
    return Image.fromarray(pixels.astype(np.uint8))


def resize_to_width(image: Image.Image, width: int) -> Image.Image:
    """Resize keeping the aspect ratio."""
    src_width, src_height = subject_size(image)
    width = max(1, width)
    height = max(1, round_half_up(src_height * width / src_width))
    return ensure_rgba(image).resize((width, height), Image.Resampling.LANCZOS)


def synthesize_shadow(
    subject: Image.Image,
    opacity: float = DEFAULT_SHADOW_OPACITY,
    blur_radius: float = DEFAULT_SHADOW_BLUR
) -> Image.Image:
    """
    Derive a soft drop-shadow from the subject's silhouette.
    
    The subject is blurred, its colour channels are forced to black and
    every alpha value is scaled by ``opacity`` (255 at 0.15 becomes 38).
    
    Args:
        subject: Transparent-background subject image
        opacity: Alpha multiplier in [0, 1]
        blur_radius: Gaussian blur radius in pixels
        
    Returns:
        A new RGBA image the size of the blurred subject
    """
    blurred = np.asarray(blur(subject, blur_radius), dtype=np.float64)
    
    shadow = np.zeros(blurred.shape, dtype=np.uint8)
    shadow[..., 3] = np.clip(np.floor(blurred[..., 3] * opacity + 0.5), 0, 255)
    
    return Image.fromarray(shadow)


def composite(canvas: Image.Image, layers: Iterable[CompositionLayer]) -> Image.Image:
    """
    Paint ``layers`` onto a copy of ``canvas`` in order with source-over
    blending; later layers cover earlier ones.
    """
    result = ensure_rgba(canvas).copy()
    for layer in layers:
        if layer.x < 0 or layer.y < 0:
            raise ValueError(f"Layer offset must be non-negative, got ({layer.x}, {layer.y})")
        image = ensure_rgba(layer.image)
        if layer.x + image.width > result.width or layer.y + image.height > result.height:
            logger.warning(
                "layer_clipped",
                canvas=result.size,
                layer=image.size,
                offset=(layer.x, layer.y)
            )
        result.alpha_composite(image, dest=(layer.x, layer.y))
    return result
