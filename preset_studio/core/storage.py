"""
Output Storage

Writes composed canvases as flat PNG files under a caller-supplied
directory, and owns the scoped temporary input file used by the URL
preset flow.

Artifact names are ``{tag}_{epochMillis}_{randomId}.png`` where the random
id is nine base-36 characters, so concurrent writers sharing a directory
do not collide.
"""

import io
import time
import string
import secrets
import asyncio
from pathlib import Path
from typing import AsyncIterator, Optional, Union
from contextlib import asynccontextmanager

from PIL import Image

from preset_studio.core.config import settings
from preset_studio.core.exceptions import FilesystemError, EncodingError
from preset_studio.core.logging import get_logger
from preset_studio.core.metrics import record_artifact_written

logger = get_logger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_lowercase
RANDOM_ID_LENGTH = 9

PathLike = Union[str, Path]


def random_id(length: int = RANDOM_ID_LENGTH) -> str:
    """Return ``length`` random base-36 characters."""
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def unique_filename(tag: str, suffix: str = ".png") -> str:
    """Generate a collision-resistant file name for ``tag``."""
    timestamp = int(time.time() * 1000)
    return f"{tag}_{timestamp}_{random_id()}{suffix}"


def encode_png(image: Image.Image) -> bytes:
    """Encode an image to PNG bytes."""
    buffer = io.BytesIO()
    try:
        image.save(buffer, format="PNG")
    except (OSError, ValueError) as e:
        raise EncodingError(f"PNG encoding failed: {e}") from e
    return buffer.getvalue()


def _write_bytes(path: Path, data: bytes) -> None:
    try:
        with open(path, "xb") as f:
            f.write(data)
    except FileExistsError as e:
        raise FilesystemError("write", str(path), "file already exists") from e
    except OSError as e:
        # Never leave a partially written artifact behind
        path.unlink(missing_ok=True)
        raise FilesystemError("write", str(path), str(e)) from e


def _unlink(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        raise FilesystemError("delete", str(path), str(e)) from e


class OutputWriter:
    """Local filesystem writer for composed PNG artifacts."""
    
    async def ensure_dir(self, output_dir: PathLike) -> Path:
        """Create ``output_dir`` (and parents) if missing. Safe to repeat."""
        path = Path(output_dir)
        try:
            await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError("mkdir", str(path), str(e)) from e
        return path
    
    async def write(self, image: Image.Image, output_dir: PathLike, tag: str) -> str:
        """
        Encode ``image`` to PNG and write it under ``output_dir``.
        
        Args:
            image: Composed canvas or subject image
            output_dir: Destination directory, created when missing
            tag: Preset name or ``nobg``
            
        Returns:
            Path of the written file
        """
        directory = await self.ensure_dir(output_dir)
        data = await asyncio.to_thread(encode_png, image)
        
        path = directory / unique_filename(tag)
        await asyncio.to_thread(_write_bytes, path, data)
        
        record_artifact_written(tag)
        logger.info(
            "artifact_written",
            path=str(path),
            tag=tag,
            size_bytes=len(data),
            dimensions=image.size
        )
        return str(path)
    
    @asynccontextmanager
    async def temporary_input(
        self,
        data: bytes,
        output_dir: PathLike,
        prefix: Optional[str] = None
    ) -> AsyncIterator[Path]:
        """
        Persist ``data`` to a temporary file in ``output_dir`` for the
        duration of the block. The file is removed on every exit path.
        
        Usage:
            async with writer.temporary_input(data, output_dir) as temp_path:
                ...
        """
        directory = await self.ensure_dir(output_dir)
        path = directory / unique_filename(prefix or settings.TEMP_FILE_PREFIX)
        
        # The writer thread cannot be interrupted, so cancellation of the
        # caller must still wait for it before the file is removed.
        write = asyncio.ensure_future(asyncio.to_thread(_write_bytes, path, data))
        try:
            await asyncio.shield(write)
            logger.debug("temp_input_created", path=str(path), size_bytes=len(data))
            yield path
        finally:
            await asyncio.wait({write})
            # A failed write already cleaned up after itself
            if not write.cancelled() and write.exception() is None:
                await asyncio.to_thread(_unlink, path)
                logger.debug("temp_input_removed", path=str(path))
