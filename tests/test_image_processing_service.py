import io

import pytest
from PIL import Image

from domain.enums.output_format import OutputFormat
from domain.enums.resize_mode import ResizeMode
from domain.exceptions import DecodeFailure
from domain.models import SizeSpec
from services.image_processing_service import ImageProcessingService
from conftest import make_image_bytes, make_noise_bytes

WHITE = (255, 255, 255)
RED = (200, 30, 30)


@pytest.fixture
def service():
    return ImageProcessingService(pad_color="#ffffff")


def _image(size, color=RED, mode="RGB"):
    return Image.new(mode, size, color)


@pytest.mark.parametrize("mode", [ResizeMode.CROP, ResizeMode.PAD, ResizeMode.BOX_PAD, ResizeMode.STRETCH])
@pytest.mark.parametrize("source_size", [(400, 400), (800, 200), (60, 90)])
def test_exact_size_modes(service, mode, source_size) -> None:
    resized = service.resize(_image(source_size), SizeSpec(width=200, height=100), mode)
    assert resized.size == (200, 100)


def test_max_fits_within_target(service) -> None:
    resized = service.resize(_image((800, 600)), SizeSpec(width=200, height=100), ResizeMode.MAX)
    assert resized.size[0] <= 200 and resized.size[1] <= 100
    assert resized.size == (133, 100)


def test_max_never_upscales(service) -> None:
    source = _image((50, 40))
    resized = service.resize(source, SizeSpec(width=200, height=100), ResizeMode.MAX)
    assert resized is source
    assert resized.size == (50, 40)


def test_min_covers_target(service) -> None:
    resized = service.resize(_image((800, 600)), SizeSpec(width=200, height=100), ResizeMode.MIN)
    assert resized.size == (200, 150)
    assert resized.size[0] >= 200 or resized.size[1] >= 100


def test_pad_letterboxes_with_fill_color(service) -> None:
    resized = service.resize(_image((400, 400)), SizeSpec(width=200, height=100), ResizeMode.PAD)
    assert resized.getpixel((10, 50)) == WHITE
    assert resized.getpixel((100, 50)) == RED


def test_box_pad_does_not_upscale_small_sources(service) -> None:
    resized = service.resize(_image((20, 10)), SizeSpec(width=200, height=100), ResizeMode.BOX_PAD)
    assert resized.size == (200, 100)
    assert resized.getpixel((100, 50)) == RED
    # Fuera del original centrado solo hay relleno
    assert resized.getpixel((89, 50)) == WHITE
    assert resized.getpixel((100, 44)) == WHITE


def test_crop_fills_the_target(service) -> None:
    resized = service.resize(_image((400, 400)), SizeSpec(width=200, height=100), ResizeMode.CROP)
    assert resized.getpixel((0, 0)) == RED
    assert resized.getpixel((199, 99)) == RED


def test_palette_images_are_normalized(service) -> None:
    source = _image((100, 100)).convert("P")
    resized = service.resize(source, SizeSpec(width=50, height=50), ResizeMode.CROP)
    assert resized.mode == "RGB"
    assert resized.size == (50, 50)


@pytest.mark.parametrize("output_format,signature", [
    (OutputFormat.JPEG, b"\xff\xd8"),
    (OutputFormat.PNG, b"\x89PNG"),
    (OutputFormat.GIF, b"GIF8"),
    (OutputFormat.WEBP, b"RIFF"),
])
def test_encode_dispatches_by_format(service, output_format, signature) -> None:
    sink = io.BytesIO()
    service.encode(_image((30, 20)), sink, output_format)
    assert sink.getvalue().startswith(signature)


def test_jpeg_flattens_transparency(service) -> None:
    sink = io.BytesIO()
    service.encode(_image((30, 20), color=(0, 0, 0, 0), mode="RGBA"), sink, OutputFormat.JPEG)
    with Image.open(io.BytesIO(sink.getvalue())) as image:
        assert image.mode == "RGB"
        r, g, b = image.getpixel((15, 10))
        assert min(r, g, b) > 240


def test_decode_reads_the_whole_stream(service) -> None:
    image = service.decode(io.BytesIO(make_image_bytes((40, 30))))
    assert image.size == (40, 30)
    assert image.getpixel((0, 0)) == RED


def test_decode_rejects_garbage(service) -> None:
    with pytest.raises(DecodeFailure):
        service.decode(io.BytesIO(b"definitely not an image"))


def test_decode_rejects_truncated_images(service) -> None:
    data = make_noise_bytes((256, 256), fmt="JPEG")
    with pytest.raises(DecodeFailure):
        service.decode(io.BytesIO(data[:len(data) // 2]))
