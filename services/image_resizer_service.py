import logging
from typing import Mapping, Optional

from core.config import FAILURE_POLICY, PREDEFINED_IMAGE_SIZES
from domain.enums.image_sizes import build_predefined_sizes
from domain.enums.output_format import PASSTHROUGH_FORMATS
from domain.enums.resize_mode import ResizeMode
from domain.exceptions import ResizeError
from domain.models import ResizeRequest, SizeSpec
from infrastructure.digitalocean_client import DigitalOceanClient
from services.size_resolver import SizeResolver
from services.transform_pipeline import TransformPipeline

logger = logging.getLogger(__name__)

# Qué hace resize() cuando algo falla
FAILURE_POLICY_ABSENT = "absent"  # registra el error y devuelve None
FAILURE_POLICY_RAISE = "raise"  # propaga el ResizeError tipado
FAILURE_POLICIES = (FAILURE_POLICY_ABSENT, FAILURE_POLICY_RAISE)


class ImageResizerService:
    def __init__(self, fetcher=None, sizes: Optional[Mapping[str, SizeSpec]] = None,
                 pipeline: Optional[TransformPipeline] = None, failure_policy: str = FAILURE_POLICY):
        if failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"Unknown failure policy '{failure_policy}', expected one of {FAILURE_POLICIES}")

        self.fetcher = fetcher or DigitalOceanClient()
        self.sizes = sizes if sizes is not None else build_predefined_sizes(PREDEFINED_IMAGE_SIZES)
        self.pipeline = pipeline or TransformPipeline()
        self.failure_policy = failure_policy

    def handle(self, request: ResizeRequest):
        return self.resize(
            object_key=request.object_key,
            container_key=request.container_key,
            size=request.size,
            output=request.output,
            mode=request.mode,
            is_video=request.is_video
        )

    def resize(self, object_key: str, container_key: str, size: Optional[str], output: Optional[str],
               mode: Optional[str], is_video: bool = False):
        """Redimensiona una imagen al tamaño y formato pedidos

        Args:
            object_key: Ruta del objeto dentro del contenedor
            container_key: Contenedor (bucket) del objeto
            size: Nombre predefinido ("thumbnail") o literal ("200x100")
            output: Formato de salida ("jpeg", "png", "webp"...)
            mode: Modo de redimensionado ("crop", "pad", "max"...)
            is_video: Los vídeos se sirven sin transformar

        Returns:
            Stream de lectura con el resultado, o None si falla y la política es "absent"

        Raises:
            ResizeError: Solo con la política "raise"
        """
        try:
            return self._get_result_stream(object_key, container_key, size, output, mode, is_video)
        except ResizeError as e:
            logger.error(f"Failed to resize image {container_key}/{object_key} "
                         f"(size={size}, output={output}, mode={mode}): {str(e)}")
            if self.failure_policy == FAILURE_POLICY_RAISE:
                raise
            return None
        except Exception:
            logger.exception(f"Unexpected error resizing {container_key}/{object_key}")
            if self.failure_policy == FAILURE_POLICY_RAISE:
                raise
            return None

    @staticmethod
    def is_passthrough(output: Optional[str], is_video: bool) -> bool:
        return is_video or (output or "").strip().lower() in PASSTHROUGH_FORMATS

    def _get_result_stream(self, object_key: str, container_key: str, size: Optional[str],
                           output: Optional[str], mode: Optional[str], is_video: bool):
        """Descarga el objeto y decide si se transforma o se sirve tal cual"""
        source = self.fetcher.open_read_stream(container_key, object_key, allow_modifications=False)

        try:
            if self.is_passthrough(output, is_video):
                return source

            spec = SizeResolver.resolve(size, self.sizes)
            if spec.skips_transform:
                logger.debug(f"Serving {container_key}/{object_key} untouched (size={size})")
                return source

            return self.pipeline.transform(source, spec, output, ResizeMode.from_token(mode))
        except BaseException:
            source.close()
            raise
