from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()  # Carga las variables de entorno desde .env

class Settings(BaseModel):
    DO_SPACES_KEY: str = os.getenv("DO_SPACES_KEY", "")
    DO_SPACES_SECRET: str = os.getenv("DO_SPACES_SECRET", "")
    DO_SPACES_REGION: str = os.getenv("DO_SPACES_REGION", "nyc3")
    DO_SPACES_ENDPOINT: str = os.getenv("DO_SPACES_ENDPOINT", "https://nyc3.digitaloceanspaces.com")
    STORAGE_TIMEOUT: int = int(os.getenv("STORAGE_TIMEOUT", "30"))

    # JSON: {"nombre": "WxH"} se mezcla sobre la tabla por defecto
    PREDEFINED_IMAGE_SIZES: str = os.getenv("PREDEFINED_IMAGE_SIZES", "")

    CLIENT_CACHE_MAX_AGE: int = int(os.getenv("CLIENT_CACHE_MAX_AGE", str(5 * 24 * 60 * 60)))
    PIPE_BUFFER_SIZE: int = int(os.getenv("PIPE_BUFFER_SIZE", "65536"))
    STREAM_CHUNK_SIZE: int = int(os.getenv("STREAM_CHUNK_SIZE", "65536"))

    # Lado máximo aceptado en un tamaño literal; por encima se ignora
    MAX_DIMENSION: int = int(os.getenv("MAX_DIMENSION", "8192"))

    PAD_COLOR: str = os.getenv("PAD_COLOR", "#ffffff")
    JPEG_QUALITY: int = int(os.getenv("JPEG_QUALITY", "85"))
    WEBP_QUALITY: int = int(os.getenv("WEBP_QUALITY", "80"))

    # "absent" devuelve None cuando falla, "raise" propaga el error tipado
    FAILURE_POLICY: str = os.getenv("FAILURE_POLICY", "absent")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()

DO_SPACES_KEY = settings.DO_SPACES_KEY
DO_SPACES_SECRET = settings.DO_SPACES_SECRET
DO_SPACES_REGION = settings.DO_SPACES_REGION
DO_SPACES_ENDPOINT = settings.DO_SPACES_ENDPOINT
STORAGE_TIMEOUT = settings.STORAGE_TIMEOUT
PREDEFINED_IMAGE_SIZES = settings.PREDEFINED_IMAGE_SIZES
CLIENT_CACHE_MAX_AGE = settings.CLIENT_CACHE_MAX_AGE
PIPE_BUFFER_SIZE = settings.PIPE_BUFFER_SIZE
STREAM_CHUNK_SIZE = settings.STREAM_CHUNK_SIZE
MAX_DIMENSION = settings.MAX_DIMENSION
PAD_COLOR = settings.PAD_COLOR
JPEG_QUALITY = settings.JPEG_QUALITY
WEBP_QUALITY = settings.WEBP_QUALITY
FAILURE_POLICY = settings.FAILURE_POLICY
LOG_LEVEL = settings.LOG_LEVEL
