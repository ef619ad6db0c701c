import io
import os
import time
from collections import Counter
from typing import Dict, Tuple

import pytest
from PIL import Image

from domain.enums.image_sizes import build_predefined_sizes
from domain.exceptions import SourceNotFound
from services.image_processing_service import ImageProcessingService


def make_image_bytes(size: Tuple[int, int] = (400, 400), fmt: str = "PNG", color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def make_noise_bytes(size: Tuple[int, int] = (512, 512), fmt: str = "PNG") -> bytes:
    buffer = io.BytesIO()
    Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3)).save(buffer, format=fmt)
    return buffer.getvalue()


def open_result(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


class TrackedStream:
    """Stream en memoria que cuenta cuántas veces se cierra."""

    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)
        self.close_count = 0

    def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    def seek(self, offset: int, whence: int = 0) -> int:
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        return self._buffer.tell()

    def close(self) -> None:
        self.close_count += 1

    @property
    def closed(self) -> bool:
        return self.close_count > 0


class InMemoryFetcher:
    def __init__(self, objects: Dict[Tuple[str, str], bytes]):
        self.objects = objects
        self.opened = []

    def open_read_stream(self, container_key: str, object_key: str, allow_modifications: bool = False):
        assert allow_modifications is False
        data = self.objects.get((container_key, object_key))
        if data is None:
            raise SourceNotFound(container_key, object_key)
        stream = TrackedStream(data)
        self.opened.append(stream)
        return stream


class TrackingCodec(ImageProcessingService):
    """Códec que registra las imágenes creadas y cuántas veces se cierran."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.images = []
        self.close_counts = Counter()
        self.decode_calls = 0

    def _track(self, image: Image.Image) -> Image.Image:
        original_close = image.close
        key = len(self.images)

        def close():
            self.close_counts[key] += 1
            original_close()

        image.close = close
        self.images.append(image)
        return image

    def decode(self, source) -> Image.Image:
        self.decode_calls += 1
        return self._track(super().decode(source))

    def resize(self, image, spec, mode):
        resized = super().resize(image, spec, mode)
        if resized is image:
            return resized
        return self._track(resized)

    def all_released_once(self) -> bool:
        return all(self.close_counts[key] == 1 for key in range(len(self.images)))


@pytest.fixture
def sizes():
    return build_predefined_sizes()


@pytest.fixture
def codec():
    return TrackingCodec()


def wait_for(predicate, timeout: float = 5.0) -> bool:
    """Espera a que el productor termine de liberar recursos."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
