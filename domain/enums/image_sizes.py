from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional
import json
import logging

from domain.models import ORIGINAL_SIZE, SizeSpec

logger = logging.getLogger(__name__)


class ImageSize(Enum):
    """
    Tamaños predefinidos que se pueden pedir por nombre.
    - Miniaturas y tamaños genéricos para listas y detalle.
    - Fotos de perfil y banners para aplicaciones móviles.
    """

    # Miniatura (cuadrada)
    THUMBNAIL = (50, 50)

    # Tamaños genéricos
    SMALL = (320, 240)
    MEDIUM = (640, 480)
    LARGE = (1280, 960)

    # Foto de perfil (cuadrada)
    PROFILE_PICTURE = (1080, 1080)  # 1:1

    # Banner de perfil (rectangular)
    PROFILE_BANNER = (1200, 600)  # 2:1

    # Banner para cabecera (rectangular)
    HEADER_BANNER = (1920, 1080)  # 16:9

    # Banner para historias (vertical)
    STORY_BANNER = (1080, 1920)  # 9:16

    @property
    def width(self):
        """Devuelve el ancho de la imagen."""
        return self.value[0]

    @property
    def height(self):
        """Devuelve el alto de la imagen."""
        return self.value[1]

    @property
    def key(self) -> str:
        """Nombre con el que se pide el tamaño (en minúsculas)."""
        return self.name.lower()

    def to_spec(self) -> SizeSpec:
        return SizeSpec(name=self.key, width=self.width, height=self.height)


def build_predefined_sizes(overrides: Optional[str] = None) -> Mapping[str, SizeSpec]:
    """Construye la tabla de tamaños predefinidos (de solo lectura).

    Args:
        overrides: JSON ``{"nombre": "WxH"}`` que se mezcla sobre los tamaños del enum

    Returns:
        Mapping: nombre en minúsculas -> SizeSpec
    """
    table = {size.key: size.to_spec() for size in ImageSize}
    table[ORIGINAL_SIZE.name] = ORIGINAL_SIZE

    if overrides:
        try:
            entries = json.loads(overrides)
        except ValueError as e:
            raise ValueError(f"PREDEFINED_IMAGE_SIZES is not valid JSON: {str(e)}")

        for name, literal in entries.items():
            key = name.lower()
            spec = SizeSpec.parse(str(literal), name=key)
            if spec.is_empty:
                logger.warning(f"Ignoring predefined size '{name}': invalid literal '{literal}'")
                continue
            table[key] = spec

    return MappingProxyType(table)
