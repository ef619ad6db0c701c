from typing import Mapping, Optional

from domain.models import EMPTY_SIZE, ORIGINAL_SIZE, ORIGINAL_SIZE_NAME, SizeSpec


class SizeResolver:

    @staticmethod
    def resolve(token: Optional[str], table: Mapping[str, SizeSpec]) -> SizeSpec:
        """Averigua si el usuario pidió un tamaño predefinido o uno literal.

        Las claves de la tabla se comparan sin distinguir mayúsculas, igual
        que el token. Los tokens que no se pueden interpretar devuelven un
        SizeSpec vacío (0x0), que el resto del servicio trata como "no
        transformar".
        """
        if not token:
            return EMPTY_SIZE

        key = token.strip().lower()
        predefined = table.get(key)
        if predefined is None:
            predefined = next((spec for name, spec in table.items() if name.lower() == key), None)
        if predefined is not None:
            return predefined

        if key == ORIGINAL_SIZE_NAME:
            return ORIGINAL_SIZE

        return SizeSpec.parse(key)
