from pydantic import BaseModel, ConfigDict
from typing import Any, Optional
import re

from core.config import MAX_DIMENSION
from domain.enums.output_format import OutputFormat
from domain.enums.resize_mode import ResizeMode

ORIGINAL_SIZE_NAME = "original"

# "200x100", "200X100", "200 x 100" o "200" (cuadrado)
_SIZE_LITERAL = re.compile(r"^\s*(\d+)\s*(?:[xX]\s*(\d+))?\s*$")


class SizeSpec(BaseModel):
    """Tamaño destino de una transformación.

    Un ancho o alto de cero significa que el token no se pudo resolver;
    el nombre ``original`` indica que no hay que transformar.
    """

    model_config = ConfigDict(frozen=True)

    name: Optional[str] = None
    width: int = 0
    height: int = 0

    @property
    def is_original(self) -> bool:
        return self.name == ORIGINAL_SIZE_NAME

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def skips_transform(self) -> bool:
        return self.is_original or self.is_empty

    @property
    def size(self) -> tuple:
        return self.width, self.height

    @classmethod
    def parse(cls, token: Optional[str], name: Optional[str] = None,
              max_dimension: int = MAX_DIMENSION) -> "SizeSpec":
        """Interpreta un literal ``WxH`` o un entero suelto. Nunca lanza.

        Los lados mayores que ``max_dimension`` cuentan como no interpretables.
        """
        match = _SIZE_LITERAL.match(token or "")
        if not match:
            return EMPTY_SIZE

        width = int(match.group(1))
        height = int(match.group(2)) if match.group(2) is not None else width
        if width <= 0 or height <= 0:
            return EMPTY_SIZE
        if width > max_dimension or height > max_dimension:
            return EMPTY_SIZE

        return cls(name=name, width=width, height=height)


EMPTY_SIZE = SizeSpec()
ORIGINAL_SIZE = SizeSpec(name=ORIGINAL_SIZE_NAME)


class ResizeRequest(BaseModel):
    object_key: str  # Ej: "teams/logo.png"
    container_key: str  # Ej: "playup-media"
    size: Optional[str] = None  # Ej: "thumbnail" o "200x100"
    output: Optional[str] = None  # Ej: "jpeg"
    mode: Optional[str] = None  # Ej: "pad"
    is_video: bool = False


class TransformRequest(BaseModel):
    """Una transformación en curso; es dueña de ``source`` hasta terminar."""

    source: Any
    spec: SizeSpec
    output_format: OutputFormat
    mode: ResizeMode
