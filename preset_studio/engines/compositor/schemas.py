from enum import Enum
from typing import NamedTuple, Optional

from PIL import Image

from preset_studio.core.exceptions import UnknownPresetError


class Preset(str, Enum):
    """The nine fixed layouts a subject can be composed into."""
    CLEAN_CENTER = "clean_center"
    CLEAN_OFFSET = "clean_offset"
    EDITORIAL_LEFT = "editorial_left"
    EDITORIAL_RIGHT = "editorial_right"
    PRODUCT_DUO_DEPTH = "product_duo_depth"
    MINIMAL_MOTION = "minimal_motion"
    SIDE_BY_SIDE = "side_by_side"
    OVERLAP_LEFT = "overlap_left"
    OVERLAP_RIGHT = "overlap_right"

    @classmethod
    def names(cls) -> frozenset:
        return frozenset(member.value for member in cls)

    @classmethod
    def parse(cls, name: Optional[str]) -> "Preset":
        """Validate a caller-supplied name, raising UnknownPresetError."""
        if isinstance(name, cls):
            return name
        try:
            return cls(name)
        except ValueError:
            raise UnknownPresetError(name, available=cls.names()) from None


class CompositionLayer(NamedTuple):
    """A buffer alpha-blended onto a canvas at an integer offset."""
    image: Image.Image
    x: int
    y: int


# Tag used for artifacts written without a preset
NO_BACKGROUND_TAG = "nobg"
