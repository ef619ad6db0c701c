from enum import Enum
from typing import Optional


class ResizeMode(Enum):
    """Cómo se concilian la relación de aspecto del origen y el tamaño destino."""

    CROP = "crop"  # rellena el destino y recorta lo que sobra, centrado
    PAD = "pad"  # encaja y rellena con color hasta el tamaño exacto
    BOX_PAD = "boxpad"  # como PAD, pero sin ampliar imágenes pequeñas
    MAX = "max"  # encaja dentro del destino, nunca amplía
    MIN = "min"  # cubre el destino manteniendo el aspecto
    STRETCH = "stretch"  # escala exacta sin mantener el aspecto

    @classmethod
    def from_token(cls, token: Optional[str]) -> "ResizeMode":
        """Función total: cualquier token desconocido o vacío es CROP."""
        try:
            return cls((token or "").strip().lower().replace("-", "").replace("_", ""))
        except ValueError:
            return cls.CROP
