import asyncio
import re
import time
from pathlib import Path

import pytest
from PIL import Image

from preset_studio.core.exceptions import FilesystemError
from preset_studio.core import storage
from preset_studio.core.storage import OutputWriter, random_id, unique_filename

NAME_PATTERN = re.compile(r"^clean_center_\d{13}_[0-9a-z]{9}\.png$")


def test_random_id_is_base36():
    value = random_id()
    assert len(value) == 9
    assert re.fullmatch(r"[0-9a-z]{9}", value)


def test_unique_filename_format():
    assert NAME_PATTERN.match(unique_filename("clean_center"))


@pytest.mark.asyncio
async def test_write_creates_directory_and_png(output_dir, subject):
    path = await OutputWriter().write(subject, output_dir, "clean_center")

    written = Path(path)
    assert written.parent == output_dir
    assert NAME_PATTERN.match(written.name)
    assert written.exists()
    with Image.open(written) as image:
        assert image.format == "PNG"
        assert image.size == subject.size
        assert image.mode == "RGBA"


@pytest.mark.asyncio
async def test_ensure_dir_is_repeatable(output_dir):
    writer = OutputWriter()
    await asyncio.gather(*(writer.ensure_dir(output_dir) for _ in range(5)))
    await writer.ensure_dir(output_dir)
    assert output_dir.is_dir()


@pytest.mark.asyncio
async def test_concurrent_writes_do_not_collide(output_dir, make_subject):
    writer = OutputWriter()
    paths = await asyncio.gather(*(
        writer.write(make_subject(8, 8), output_dir, "side_by_side") for _ in range(10)
    ))
    assert len(set(paths)) == 10
    assert len(list(output_dir.glob("side_by_side_*.png"))) == 10


@pytest.mark.asyncio
async def test_write_into_file_path_fails(tmp_path, subject):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    with pytest.raises(FilesystemError) as exc_info:
        await OutputWriter().write(subject, blocker, "nobg")
    assert exc_info.value.details["operation"] == "mkdir"


@pytest.mark.asyncio
async def test_temporary_input_removed_on_success(output_dir):
    async with OutputWriter().temporary_input(b"payload", output_dir) as temp_path:
        assert temp_path.read_bytes() == b"payload"
        assert temp_path.name.startswith("temp_")
    assert not temp_path.exists()


@pytest.mark.asyncio
async def test_temporary_input_removed_on_error(output_dir):
    with pytest.raises(RuntimeError):
        async with OutputWriter().temporary_input(b"payload", output_dir) as temp_path:
            assert temp_path.exists()
            raise RuntimeError("boom")
    assert not temp_path.exists()
    assert list(output_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_partial_write_is_removed(monkeypatch, output_dir, subject):
    real_open = open

    class DiskFullFile:
        def __init__(self, path, mode):
            self._f = real_open(path, mode)

        def __enter__(self):
            return self

        def __exit__(self, *exc_info):
            self._f.close()
            return False

        def write(self, data):
            self._f.write(data[:16])
            raise OSError(28, "No space left on device")

    monkeypatch.setattr(storage, "open", DiskFullFile, raising=False)

    with pytest.raises(FilesystemError) as exc_info:
        await OutputWriter().write(subject, output_dir, "clean_center")

    assert exc_info.value.details["operation"] == "write"
    assert list(output_dir.glob("clean_center_*.png")) == []


@pytest.mark.asyncio
async def test_temporary_input_removed_when_cancelled_mid_write(monkeypatch, output_dir):
    real_write_bytes = storage._write_bytes

    def slow_write_bytes(path, data):
        time.sleep(0.3)
        real_write_bytes(path, data)

    monkeypatch.setattr(storage, "_write_bytes", slow_write_bytes)

    async def hold_temp_input():
        async with OutputWriter().temporary_input(b"payload", output_dir):
            await asyncio.sleep(10)

    task = asyncio.ensure_future(hold_temp_input())
    await asyncio.sleep(0.1)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    # The write thread finished before the cleanup ran
    await asyncio.sleep(0.4)
    assert list(output_dir.glob("temp_*")) == []
