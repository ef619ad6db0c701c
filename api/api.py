import logging
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from core.config import CLIENT_CACHE_MAX_AGE, STREAM_CHUNK_SIZE
from domain.enums.output_format import OutputFormat
from domain.exceptions import DecodeFailure, EncodeFailure, ResizeError, SourceNotFound, SourceUnavailable
from services.image_resizer_service import ImageResizerService

logger = logging.getLogger(__name__)

router = APIRouter()
resizer_service = ImageResizerService()


def get_resizer_service() -> ImageResizerService:
    return resizer_service


def to_suffix(value: Optional[str]) -> str:
    """Extensión de una ruta (lo que va tras el último punto)"""
    if not value:
        return ""
    return value[value.rfind('.') + 1:]


def to_http_error(error: Exception) -> HTTPException:
    if isinstance(error, SourceNotFound):
        return HTTPException(status_code=404, detail="Image not found")
    if isinstance(error, SourceUnavailable):
        return HTTPException(status_code=502, detail="Storage is unavailable")
    if isinstance(error, DecodeFailure):
        return HTTPException(status_code=415, detail="The stored file is not a supported image")
    if isinstance(error, EncodeFailure):
        return HTTPException(status_code=500, detail="Could not encode the image")
    return HTTPException(status_code=500, detail="Could not resize the image")


def _iter_result(stream, first_chunk: bytes, chunk_size: int) -> Iterator[bytes]:
    try:
        if first_chunk:
            yield first_chunk
        while True:
            chunk = stream.read(chunk_size)
            if not chunk:
                return
            yield chunk
    finally:
        stream.close()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/{container_key}/{object_key:path}")
def resize_image(
        container_key: str,
        object_key: str,
        size: Optional[str] = Query(None, description="Tamaño predefinido (thumbnail, small...) o literal WxH"),
        output: Optional[str] = Query(None, description="Formato de salida; por defecto la extensión del objeto"),
        mode: Optional[str] = Query(None, description="crop, pad, boxpad, max, min o stretch"),
        video: bool = Query(False, description="Los vídeos se sirven sin transformar"),
        service: ImageResizerService = Depends(get_resizer_service)
):
    """
    Devuelve la imagen redimensionada en streaming.

    - **size**: nombre de la tabla de tamaños o literal `200x100` / `200`
    - **output**: jpeg, jpg, gif, webp, avif, png (svg se sirve tal cual)
    - **mode**: política de redimensionado; por defecto crop
    """
    output = output or to_suffix(object_key)

    try:
        stream = service.resize(object_key, container_key, size, output, mode, is_video=video)
    except ResizeError as e:
        raise to_http_error(e)

    if stream is None:
        raise HTTPException(status_code=404, detail="Image not found or could not be resized")

    # Leer el primer bloque antes de enviar cabeceras: si el productor falla
    # al decodificar, el cliente recibe un error y no un cuerpo truncado
    try:
        first_chunk = stream.read(STREAM_CHUNK_SIZE)
    except Exception as e:
        stream.close()
        logger.error(f"Resize of {container_key}/{object_key} failed before streaming: {str(e)}")
        raise to_http_error(e)

    media_type = getattr(stream, "content_type", None) or OutputFormat.from_token(output).media_type

    return StreamingResponse(
        _iter_result(stream, first_chunk, STREAM_CHUNK_SIZE),
        media_type=media_type,
        headers={"Cache-Control": f"public, max-age={CLIENT_CACHE_MAX_AGE}"},
        background=BackgroundTask(stream.close)
    )
