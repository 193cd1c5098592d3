"""
Pipeline Stage Implementations

Each stage is a separate coroutine that can be called independently:
1. Source Acquisition - local path or remote URL into bytes
2. Background Removal - opaque segmentation function into a subject image
"""

import io
import asyncio
import threading
from pathlib import Path
from typing import Optional, Protocol

import httpx
from PIL import Image, UnidentifiedImageError

from preset_studio.core.config import settings
from preset_studio.core.exceptions import (
    PresetStudioError,
    BackgroundRemovalError,
    EncodingError,
    FetchFailedError,
    FetchTimeoutError,
    FilesystemError,
)
from preset_studio.core.logging import get_logger, with_logging
from preset_studio.core.metrics import record_source_fetch, track_stage_latency
from preset_studio.engines.compositor.primitives import subject_size

logger = get_logger(__name__)

REMOTE_SCHEMES = ("http://", "https://")


class Segmenter(Protocol):
    """Strips the background from encoded image bytes, returning encoded RGBA bytes."""

    async def __call__(self, data: bytes) -> bytes:
        ...


class RembgSegmenter:
    """Default segmenter backed by rembg. The model session is created on first use."""

    def __init__(self, model_name: Optional[str] = None):
        self.model_name = model_name or settings.REMBG_MODEL
        self._session = None
        self._session_lock = threading.Lock()

    def _remove(self, data: bytes) -> bytes:
        # Lazy import, rembg pulls in onnxruntime
        from rembg import new_session, remove

        # Runs in worker threads; only one of them may build the session
        with self._session_lock:
            if self._session is None:
                logger.info("rembg_session_loading", model=self.model_name)
                self._session = new_session(self.model_name)
        return remove(data, session=self._session)

    async def __call__(self, data: bytes) -> bytes:
        return await asyncio.to_thread(self._remove, data)


# =============================================================================
# Stage 1: Source Acquisition
# =============================================================================

def is_remote_source(source: str) -> bool:
    return source.startswith(REMOTE_SCHEMES)


async def read_local_file(path: str) -> bytes:
    """Read a local file's raw bytes."""
    try:
        data = await asyncio.to_thread(Path(path).read_bytes)
    except OSError as e:
        record_source_fetch("local", "error")
        raise FilesystemError("read", str(path), str(e)) from e

    record_source_fetch("local", "success")
    return data


async def fetch_remote(
    url: str,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> bytes:
    """
    Fetch ``url`` with a hard bound on the whole request.

    Raises:
        FetchTimeoutError: the bound expired; the request is cancelled
        FetchFailedError: non-success status or transport failure
    """
    timeout = settings.FETCH_TIMEOUT_SECONDS if timeout is None else timeout

    async def _get() -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            follow_redirects=True
        ) as client:
            return await client.get(url)

    logger.info("fetch_started", url=url, timeout_seconds=timeout)

    try:
        response = await asyncio.wait_for(_get(), timeout=timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        record_source_fetch("remote", "timeout")
        raise FetchTimeoutError(url, timeout) from e
    except httpx.HTTPError as e:
        record_source_fetch("remote", "error")
        raise FetchFailedError(str(e) or type(e).__name__) from e

    if not response.is_success:
        record_source_fetch("remote", "error")
        raise FetchFailedError(response.reason_phrase, http_status=response.status_code)

    record_source_fetch("remote", "success")
    logger.info(
        "fetch_completed",
        url=url,
        http_status=response.status_code,
        size_bytes=len(response.content)
    )
    return response.content


@with_logging("acquire")
async def resolve_source(
    source: str,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> bytes:
    """
    Resolve a local path or an ``http(s)://`` URL into bytes.

    Args:
        source: Local path or remote URL
        timeout: Remote fetch bound in seconds (default from settings)
        transport: Optional httpx transport, used by tests

    Returns:
        Raw source bytes
    """
    with track_stage_latency("acquire"):
        if is_remote_source(source):
            return await fetch_remote(source, timeout=timeout, transport=transport)
        return await read_local_file(source)


# =============================================================================
# Stage 2: Background Removal
# =============================================================================

def decode_subject(data: bytes) -> Image.Image:
    """Decode segmented bytes into an RGBA subject image with known dimensions."""
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise EncodingError(f"Segmented image could not be decoded: {e}", stage="rembg") from e

    subject = image.convert("RGBA")
    subject_size(subject)
    return subject


@with_logging("rembg")
async def remove_background(data: bytes, segmenter: Segmenter) -> Image.Image:
    """
    Strip the background from ``data`` with the injected segmenter.

    Args:
        data: Encoded source image
        segmenter: Async bytes -> bytes segmentation function

    Returns:
        Transparent-background subject image
    """
    logger.info("rembg_starting", input_size=len(data))

    with track_stage_latency("rembg"):
        try:
            segmented = await segmenter(data)
        except PresetStudioError:
            raise
        except Exception as e:
            raise BackgroundRemovalError(f"Background removal failed: {e}") from e

        subject = await asyncio.to_thread(decode_subject, segmented)

    logger.info(
        "rembg_completed",
        input_size=len(data),
        output_size=len(segmented),
        dimensions=subject.size
    )
    return subject
