from enum import Enum
from types import MappingProxyType
from typing import Optional


class OutputFormat(Enum):
    """Codificadores disponibles: (formato de Pillow, media type)."""

    JPEG = ("JPEG", "image/jpeg")
    GIF = ("GIF", "image/gif")
    WEBP = ("WEBP", "image/webp")
    PNG = ("PNG", "image/png")

    @property
    def pillow_format(self) -> str:
        return self.value[0]

    @property
    def media_type(self) -> str:
        return self.value[1]

    @classmethod
    def from_token(cls, token: Optional[str]) -> "OutputFormat":
        return OUTPUT_FORMAT_ENCODERS.get((token or "").strip().lower(), DEFAULT_OUTPUT_FORMAT)


DEFAULT_OUTPUT_FORMAT = OutputFormat.PNG

# avif y svg se codifican como WebP a propósito: no hay codificador propio
# para ellos (y svg ya se sirve sin transformar antes de llegar aquí).
OUTPUT_FORMAT_ENCODERS = MappingProxyType({
    "jpeg": OutputFormat.JPEG,
    "jpg": OutputFormat.JPEG,
    "gif": OutputFormat.GIF,
    "avif": OutputFormat.WEBP,
    "svg": OutputFormat.WEBP,
    "webp": OutputFormat.WEBP,
    "png": OutputFormat.PNG,
})

# Tokens que se sirven tal cual, sin decodificar
PASSTHROUGH_FORMATS = frozenset({"svg"})
