import io
from pathlib import Path
from typing import Callable, List

import pytest
from PIL import Image

from preset_studio.pipeline.service import ImageProcessingService, ImageServiceFactory

SUBJECT_COLOR = (200, 100, 50, 255)


def _png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


class FakeSegmenter:
    """Stands in for rembg: returns its input decoded and re-encoded as RGBA PNG."""

    def __init__(self):
        self.calls: List[int] = []

    async def __call__(self, data: bytes) -> bytes:
        self.calls.append(len(data))
        return _png(Image.open(io.BytesIO(data)).convert("RGBA"))


@pytest.fixture
def make_subject() -> Callable[..., Image.Image]:
    def _make(width: int = 100, height: int = 100, color=SUBJECT_COLOR) -> Image.Image:
        return Image.new("RGBA", (width, height), color)
    return _make


@pytest.fixture
def subject(make_subject) -> Image.Image:
    return make_subject(100, 100)


@pytest.fixture
def to_png() -> Callable[[Image.Image], bytes]:
    return _png


@pytest.fixture
def subject_png(subject) -> bytes:
    return _png(subject)


@pytest.fixture
def source_file(tmp_path, subject_png) -> Path:
    path = tmp_path / "input.png"
    path.write_bytes(subject_png)
    return path


@pytest.fixture
def output_dir(tmp_path) -> Path:
    return tmp_path / "out" / "nested"


@pytest.fixture
def segmenter() -> FakeSegmenter:
    return FakeSegmenter()


@pytest.fixture
def service(segmenter) -> ImageProcessingService:
    return ImageProcessingService(segmenter=segmenter)


@pytest.fixture(autouse=True)
def reset_default_service():
    yield
    ImageServiceFactory.reset()
