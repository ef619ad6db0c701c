import io
from PIL import Image, ImageOps
import logging

from core.config import JPEG_QUALITY, PAD_COLOR, WEBP_QUALITY
from domain.enums.output_format import OutputFormat
from domain.enums.resize_mode import ResizeMode
from domain.exceptions import ConsumerAborted, DecodeFailure, EncodeFailure
from domain.models import SizeSpec

logger = logging.getLogger(__name__)


class ImageProcessingService:
    """Códec: decodifica, redimensiona y codifica imágenes con Pillow."""

    def __init__(self, pad_color: str = PAD_COLOR, jpeg_quality: int = JPEG_QUALITY,
                 webp_quality: int = WEBP_QUALITY):
        self.pad_color = pad_color
        self.jpeg_quality = jpeg_quality
        self.webp_quality = webp_quality

    def decode(self, source) -> Image.Image:
        """Lee el stream completo y devuelve la imagen ya cargada en memoria

        El stream de origen sigue siendo del llamador: Pillow trabaja sobre
        una copia en memoria y nunca lo cierra.
        """
        data = source.read()
        try:
            image = Image.open(io.BytesIO(data))
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise DecodeFailure(f"Cannot identify image: {str(e)}") from e

        try:
            image.load()
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            image.close()
            raise DecodeFailure(f"Cannot decode image: {str(e)}") from e

        logger.debug(f"Decoded {image.format} image {image.size[0]}x{image.size[1]} ({len(data)} bytes)")
        return image

    def resize(self, image: Image.Image, spec: SizeSpec, mode: ResizeMode) -> Image.Image:
        """Aplica el modo de redimensionado y devuelve la imagen resultante.

        No cierra ``image``; si el resultado es otro objeto, el llamador
        debe cerrar ambos.
        """
        normalized = self._normalize_mode(image)
        try:
            resized = self._apply(normalized, spec.width, spec.height, mode)
        except Exception:
            if normalized is not image:
                normalized.close()
            raise

        if normalized is not image and resized is not normalized:
            normalized.close()
        return resized

    def encode(self, image: Image.Image, sink, output_format: OutputFormat) -> None:
        """Codifica la imagen en ``sink`` con el codificador del formato pedido"""
        to_save = image
        try:
            if output_format is OutputFormat.JPEG:
                to_save = self._flatten(image)
                to_save.save(sink, format="JPEG", quality=self.jpeg_quality)
            elif output_format is OutputFormat.WEBP:
                image.save(sink, format="WEBP", quality=self.webp_quality)
            else:
                image.save(sink, format=output_format.pillow_format)
        except ConsumerAborted:
            raise
        except (OSError, ValueError, KeyError) as e:
            raise EncodeFailure(f"Cannot encode image as {output_format.pillow_format}: {str(e)}") from e
        finally:
            if to_save is not image:
                to_save.close()

    def _apply(self, image: Image.Image, width: int, height: int, mode: ResizeMode) -> Image.Image:
        target = (width, height)
        original_width, original_height = image.size

        if mode is ResizeMode.STRETCH:
            return image.resize(target, Image.LANCZOS)

        if mode is ResizeMode.PAD:
            return ImageOps.pad(image, target, method=Image.LANCZOS, color=self.pad_color)

        if mode is ResizeMode.BOX_PAD:
            if original_width > width or original_height > height:
                return ImageOps.pad(image, target, method=Image.LANCZOS, color=self.pad_color)

            # Cabe sin ampliar: solo se centra sobre el lienzo
            canvas = Image.new(image.mode, target, self.pad_color)
            offset = (
                (width - original_width) // 2,
                (height - original_height) // 2
            )
            canvas.paste(image, offset)
            return canvas

        if mode is ResizeMode.MAX:
            if original_width <= width and original_height <= height:
                return image
            ratio = min(width / original_width, height / original_height)
            return image.resize(self._scaled(image.size, ratio), Image.LANCZOS)

        if mode is ResizeMode.MIN:
            ratio = max(width / original_width, height / original_height)
            return image.resize(self._scaled(image.size, ratio), Image.LANCZOS)

        return ImageOps.fit(image, target, method=Image.LANCZOS, centering=(0.5, 0.5))

    @staticmethod
    def _scaled(size: tuple, ratio: float) -> tuple:
        return max(1, round(size[0] * ratio)), max(1, round(size[1] * ratio))

    @staticmethod
    def _normalize_mode(image: Image.Image) -> Image.Image:
        """Pasa paletas y escalas de grises a RGB/RGBA para poder remuestrear"""
        if image.mode in ("RGB", "RGBA"):
            return image
        if image.mode in ("LA", "PA", "RGBa") or "transparency" in image.info:
            return image.convert("RGBA")
        return image.convert("RGB")

    @staticmethod
    def _flatten(image: Image.Image) -> Image.Image:
        """JPEG no admite transparencia: se compone sobre fondo blanco"""
        if image.mode in ("RGBA", "LA"):
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[-1])
            return background
        if image.mode != "RGB":
            return image.convert("RGB")
        return image
