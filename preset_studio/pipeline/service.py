"""
Image Processing Service

Entry points invoked in-process by the host route layer:

- process_image: local file -> rembg -> preset (or nobg) -> PNG
- remove_background_from_url: local-or-remote source -> rembg -> PNG
- apply_preset_from_url: local-or-remote source -> temp file -> rembg
  -> preset -> PNG, with the temp file removed on every exit path
- get_available_presets: the fixed preset names
"""

import uuid
import asyncio
from pathlib import Path
from typing import List, Optional, Union

import httpx
from PIL import Image

from preset_studio.core.logging import get_logger, LogContext
from preset_studio.core.metrics import track_stage_latency
from preset_studio.core.storage import OutputWriter
from preset_studio.engines.compositor import (
    NO_BACKGROUND_TAG,
    Preset,
    apply_preset,
    list_presets,
)
from preset_studio.pipeline.stages import (
    RembgSegmenter,
    Segmenter,
    read_local_file,
    remove_background,
    resolve_source,
)

logger = get_logger(__name__)

PathLike = Union[str, Path]


def new_job_id() -> str:
    return uuid.uuid4().hex


class ImageProcessingService:
    """
    Runs the composition pipeline with injected collaborators.

    Args:
        segmenter: Async background-removal function (default: rembg)
        writer: Output writer (default: local filesystem)
        fetch_timeout: Remote fetch bound in seconds (default from settings)
        http_transport: Optional httpx transport for remote sources
    """

    def __init__(
        self,
        segmenter: Optional[Segmenter] = None,
        writer: Optional[OutputWriter] = None,
        fetch_timeout: Optional[float] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.segmenter = segmenter or RembgSegmenter()
        self.writer = writer or OutputWriter()
        self.fetch_timeout = fetch_timeout
        self.http_transport = http_transport

    async def _resolve(self, source: str) -> bytes:
        return await resolve_source(
            source,
            timeout=self.fetch_timeout,
            transport=self.http_transport
        )

    async def _compose(self, preset: Preset, subject: Image.Image) -> Image.Image:
        with LogContext(stage="compose"), track_stage_latency("compose"):
            return await asyncio.to_thread(apply_preset, preset, subject)

    async def _write(self, image: Image.Image, output_dir: PathLike, tag: str) -> str:
        with LogContext(stage="write"), track_stage_latency("write"):
            return await self.writer.write(image, output_dir, tag)

    async def process_image(
        self,
        input_path: PathLike,
        output_dir: PathLike,
        preset: Optional[str] = None,
        remove_background_only: bool = False,
    ) -> str:
        """
        Remove the background of a local file and optionally compose it.

        With ``remove_background_only`` the ``preset`` argument is ignored and
        the artifact is tagged ``nobg``.

        Raises:
            UnknownPresetError: ``preset`` is missing or not registered
        """
        with LogContext(job_id=new_job_id()):
            layout = None if remove_background_only else Preset.parse(preset)
            logger.info(
                "process_image_started",
                input_path=str(input_path),
                preset=layout.value if layout else None,
                remove_background_only=remove_background_only
            )

            await self.writer.ensure_dir(output_dir)
            data = await read_local_file(str(input_path))
            subject = await remove_background(data, self.segmenter)

            if layout is None:
                return await self._write(subject, output_dir, NO_BACKGROUND_TAG)

            canvas = await self._compose(layout, subject)
            return await self._write(canvas, output_dir, layout.value)

    async def remove_background_from_url(self, source: str, output_dir: PathLike) -> str:
        """Resolve ``source`` (local or remote), strip its background, write ``nobg``."""
        with LogContext(job_id=new_job_id()):
            logger.info("remove_background_started", source=source)

            await self.writer.ensure_dir(output_dir)
            data = await self._resolve(source)
            subject = await remove_background(data, self.segmenter)
            return await self._write(subject, output_dir, NO_BACKGROUND_TAG)

    async def apply_preset_from_url(
        self,
        source: str,
        preset: str,
        output_dir: PathLike,
    ) -> str:
        """
        Resolve ``source``, persist it to a temp file, strip its background,
        compose ``preset`` and write the result. The temp file never outlives
        the call.
        """
        with LogContext(job_id=new_job_id()):
            layout = Preset.parse(preset)
            logger.info("apply_preset_started", source=source, preset=layout.value)

            await self.writer.ensure_dir(output_dir)
            data = await self._resolve(source)

            async with self.writer.temporary_input(data, output_dir) as temp_path:
                staged = await read_local_file(str(temp_path))
                subject = await remove_background(staged, self.segmenter)
                canvas = await self._compose(layout, subject)
                return await self._write(canvas, output_dir, layout.value)

    @staticmethod
    def get_available_presets() -> List[str]:
        return sorted(list_presets())


class ImageServiceFactory:
    """Lazily built process-wide default service."""

    _instance: Optional[ImageProcessingService] = None

    @classmethod
    def get_service(cls) -> ImageProcessingService:
        if cls._instance is None:
            cls._instance = ImageProcessingService()
        return cls._instance

    @classmethod
    def set_service(cls, service: ImageProcessingService):
        """Install a configured service (e.g. with a custom segmenter)."""
        cls._instance = service

    @classmethod
    def reset(cls):
        """Reset the singleton instance (useful for testing)."""
        cls._instance = None


# =============================================================================
# Module-level entry points
# =============================================================================

async def process_image(
    input_path: PathLike,
    output_dir: PathLike,
    preset: Optional[str] = None,
    remove_background_only: bool = False,
) -> str:
    return await ImageServiceFactory.get_service().process_image(
        input_path, output_dir, preset, remove_background_only
    )


async def remove_background_from_url(source: str, output_dir: PathLike) -> str:
    return await ImageServiceFactory.get_service().remove_background_from_url(source, output_dir)


async def apply_preset_from_url(source: str, preset: str, output_dir: PathLike) -> str:
    return await ImageServiceFactory.get_service().apply_preset_from_url(source, preset, output_dir)


def get_available_presets() -> List[str]:
    """The nine fixed preset names."""
    return ImageProcessingService.get_available_presets()
