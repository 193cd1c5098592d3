import asyncio
from pathlib import Path

import httpx
import pytest
from PIL import Image

import preset_studio
from preset_studio.core.exceptions import (
    BackgroundRemovalError,
    FetchTimeoutError,
    FilesystemError,
    UnknownPresetError,
)
from preset_studio.core.metrics import get_metrics
from preset_studio.pipeline.service import ImageProcessingService, ImageServiceFactory


@pytest.mark.asyncio
async def test_process_image_with_preset(service, source_file, output_dir):
    path = Path(await service.process_image(source_file, output_dir, "clean_center"))

    assert path.parent == output_dir
    assert path.name.startswith("clean_center_")
    with Image.open(path) as image:
        assert image.size == (160, 140)


@pytest.mark.asyncio
async def test_process_image_background_only_ignores_preset(service, source_file, output_dir):
    path = Path(await service.process_image(
        source_file, output_dir, "not_a_preset", remove_background_only=True
    ))

    assert path.name.startswith("nobg_")
    with Image.open(path) as image:
        assert image.size == (100, 100)


@pytest.mark.asyncio
async def test_process_image_unknown_preset(service, segmenter, source_file, output_dir):
    with pytest.raises(UnknownPresetError) as exc_info:
        await service.process_image(source_file, output_dir, "polaroid")

    assert "polaroid" in str(exc_info.value)
    # Rejected before segmentation runs
    assert segmenter.calls == []


@pytest.mark.asyncio
async def test_process_image_requires_preset(service, source_file, output_dir):
    with pytest.raises(UnknownPresetError):
        await service.process_image(source_file, output_dir)


@pytest.mark.asyncio
async def test_process_image_missing_input(service, tmp_path, output_dir):
    with pytest.raises(FilesystemError):
        await service.process_image(tmp_path / "missing.png", output_dir, "side_by_side")


@pytest.mark.asyncio
async def test_concurrent_calls_produce_distinct_files(service, source_file, output_dir):
    first, second = await asyncio.gather(
        service.process_image(source_file, output_dir, "overlap_left"),
        service.process_image(source_file, output_dir, "overlap_left"),
    )

    assert first != second
    assert Path(first).exists()
    assert Path(second).exists()
    assert len(list(output_dir.glob("overlap_left_*.png"))) == 2


@pytest.mark.asyncio
async def test_remove_background_from_remote_url(segmenter, subject_png, output_dir):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=subject_png))
    service = ImageProcessingService(segmenter=segmenter, http_transport=transport)

    path = Path(await service.remove_background_from_url("https://cdn.example.com/p.png", output_dir))

    assert path.name.startswith("nobg_")
    assert path.exists()
    assert segmenter.calls == [len(subject_png)]


@pytest.mark.asyncio
async def test_remove_background_from_local_source(service, source_file, output_dir):
    path = Path(await service.remove_background_from_url(str(source_file), output_dir))
    assert path.name.startswith("nobg_")


@pytest.mark.asyncio
async def test_apply_preset_from_url_cleans_temp_file(service, source_file, output_dir):
    path = Path(await service.apply_preset_from_url(str(source_file), "editorial_right", output_dir))

    assert path.name.startswith("editorial_right_")
    assert [p.name for p in output_dir.iterdir()] == [path.name]


@pytest.mark.asyncio
async def test_apply_preset_from_url_cleans_temp_file_on_failure(source_file, output_dir):
    seen_temp_files = []

    async def failing_segmenter(data: bytes) -> bytes:
        seen_temp_files.extend(output_dir.glob("temp_*"))
        raise RuntimeError("segmentation exploded")

    service = ImageProcessingService(segmenter=failing_segmenter)

    with pytest.raises(BackgroundRemovalError):
        await service.apply_preset_from_url(str(source_file), "clean_center", output_dir)

    assert len(seen_temp_files) == 1
    assert not seen_temp_files[0].exists()
    assert list(output_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_apply_preset_from_url_timeout(segmenter, output_dir):
    async def never_responds(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    service = ImageProcessingService(
        segmenter=segmenter,
        fetch_timeout=0.05,
        http_transport=httpx.MockTransport(never_responds),
    )

    with pytest.raises(FetchTimeoutError):
        await service.apply_preset_from_url("https://slow.example.com/p.png", "clean_center", output_dir)

    assert list(output_dir.glob("temp_*")) == []
    assert segmenter.calls == []


@pytest.mark.asyncio
async def test_apply_preset_from_url_unknown_preset(service, source_file, output_dir):
    with pytest.raises(UnknownPresetError):
        await service.apply_preset_from_url(str(source_file), "bogus", output_dir)
    assert not output_dir.exists() or list(output_dir.iterdir()) == []


def test_get_available_presets():
    presets = preset_studio.get_available_presets()
    assert len(presets) == 9
    assert set(presets) == {
        "clean_center", "clean_offset", "editorial_left", "editorial_right",
        "product_duo_depth", "minimal_motion", "side_by_side",
        "overlap_left", "overlap_right",
    }


@pytest.mark.asyncio
async def test_module_entry_points_use_installed_service(service, source_file, output_dir):
    ImageServiceFactory.set_service(service)

    path = await preset_studio.process_image(str(source_file), str(output_dir), "side_by_side")

    assert Path(path).name.startswith("side_by_side_")
    assert b"preset_studio_compositions_total" in get_metrics()
    assert b"preset_studio_artifacts_written_total" in get_metrics()


def test_default_service_is_lazy_singleton():
    first = ImageServiceFactory.get_service()
    assert ImageServiceFactory.get_service() is first
    ImageServiceFactory.reset()
    assert ImageServiceFactory.get_service() is not first
