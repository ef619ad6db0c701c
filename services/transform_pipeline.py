"""Decodifica, redimensiona y codifica en segundo plano hacia un pipe.

``transform`` devuelve enseguida el extremo de lectura del pipe; un hilo por
petición hace el trabajo y escribe en el extremo de escritura. El buffer del
pipe está acotado, así que un consumidor lento frena al productor.
"""
import logging
import threading

from PIL import Image

from core.config import PIPE_BUFFER_SIZE
from domain.enums.output_format import OutputFormat
from domain.enums.resize_mode import ResizeMode
from domain.exceptions import ConsumerAborted
from domain.models import SizeSpec, TransformRequest
from infrastructure.pipe import Pipe, PipeReader, PipeWriter
from services.image_processing_service import ImageProcessingService

logger = logging.getLogger(__name__)


class TransformPipeline:
    def __init__(self, codec: ImageProcessingService = None, buffer_size: int = PIPE_BUFFER_SIZE):
        self.codec = codec or ImageProcessingService()
        self.buffer_size = buffer_size

    def transform(self, source, spec: SizeSpec, output: str, mode: ResizeMode) -> PipeReader:
        """Arranca la transformación y devuelve el stream con el resultado

        Args:
            source: Stream de origen; la pipeline pasa a ser su dueña y lo cierra
            spec: Tamaño destino (ancho y alto positivos)
            output: Token del formato de salida (jpeg, gif, webp, png...)
            mode: Modo de redimensionado

        Returns:
            PipeReader: un fallo del productor se lanza en el ``read`` del consumidor
        """
        request = TransformRequest(
            source=source,
            spec=spec,
            output_format=OutputFormat.from_token(output),
            mode=mode
        )

        pipe = Pipe(self.buffer_size)
        producer = threading.Thread(
            target=self._produce,
            args=(request, pipe.writer),
            name=f"resize-{spec.width}x{spec.height}",
            daemon=True
        )
        pipe.reader.producer = producer

        # Si el hilo no arranca, el stream sigue siendo del llamador
        producer.start()
        return pipe.reader

    def _produce(self, request: TransformRequest, writer: PipeWriter) -> None:
        image = None
        resized = None
        try:
            image = self.codec.decode(request.source)
            self._check_aborted(writer)
            resized = self.codec.resize(image, request.spec, request.mode)
            self._check_aborted(writer)
            self.codec.encode(resized, writer, request.output_format)
            writer.flush()
            writer.close()
        except ConsumerAborted as e:
            logger.debug(f"Consumer closed the stream before {request.spec.width}x{request.spec.height} finished")
            writer.fail(e)
        except Exception as e:
            logger.exception(
                f"Failed to process image stream ({request.spec.width}x{request.spec.height}, "
                f"{request.mode.value}, {request.output_format.pillow_format})"
            )
            writer.fail(e)
        finally:
            request.source.close()
            self._release(resized, image)

    @staticmethod
    def _check_aborted(writer: PipeWriter) -> None:
        # Sin lector no tiene sentido seguir con el siguiente paso
        if writer.aborted:
            raise ConsumerAborted("Reader closed the pipe")

    @staticmethod
    def _release(resized: Image.Image, image: Image.Image) -> None:
        if resized is not None and resized is not image:
            resized.close()
        if image is not None:
            image.close()
