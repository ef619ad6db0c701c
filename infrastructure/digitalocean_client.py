import hashlib
import hmac
import datetime
import requests
import urllib3
from typing import Optional
from urllib.parse import quote, urlparse
import logging

from core.config import DO_SPACES_ENDPOINT, DO_SPACES_REGION, DO_SPACES_SECRET, DO_SPACES_KEY, STORAGE_TIMEOUT
from domain.exceptions import SourceNotFound, SourceUnavailable

logger = logging.getLogger(__name__)

EMPTY_PAYLOAD_HASH = hashlib.sha256(b"").hexdigest()
NOT_FOUND_CODES = ("NoSuchKey", "NoSuchBucket")


class BlobStream:
    """Stream secuencial (no seekable) sobre el cuerpo de un GET a Spaces.

    Quien lo recibe es su único dueño y debe cerrarlo una vez; cerrar
    libera la conexión HTTP.
    """

    def __init__(self, response: requests.Response, container_key: str = "", object_key: str = ""):
        self._response = response
        self._raw = response.raw
        self._closed = False
        self.container_key = container_key
        self.object_key = object_key
        self.content_type = response.headers.get("Content-Type", "application/octet-stream")
        length = response.headers.get("Content-Length")
        self.content_length = int(length) if length and length.isdigit() else None

    def read(self, size: int = -1) -> bytes:
        if self._closed:
            raise ValueError("read from a closed stream")
        amount = None if size is None or size < 0 else size
        try:
            return self._raw.read(amount, decode_content=True)
        except (urllib3.exceptions.HTTPError, requests.exceptions.RequestException) as e:
            logger.error(f"Error de conexión leyendo {self.container_key}/{self.object_key}: {str(e)}")
            raise SourceUnavailable(self.container_key, self.object_key, str(e)) from e

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._response.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def iter_chunks(self, chunk_size: int = 64 * 1024):
        while True:
            chunk = self.read(chunk_size)
            if not chunk:
                return
            yield chunk

    def __iter__(self):
        return self.iter_chunks()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class DigitalOceanClient:
    def __init__(self, endpoint: str = DO_SPACES_ENDPOINT, region: str = DO_SPACES_REGION,
                 access_key: str = DO_SPACES_KEY, secret_key: str = DO_SPACES_SECRET,
                 timeout: int = STORAGE_TIMEOUT):
        parsed = urlparse(endpoint)
        self.scheme = parsed.scheme or "https"
        self.endpoint_host = parsed.netloc or parsed.path
        self.region = region
        self.access_key = access_key
        self.secret_key = secret_key
        self.timeout = timeout
        self.service = "s3"
        self.request_type = "aws4_request"

    def _sign(self, key: bytes, msg: str) -> bytes:
        """Firma un mensaje con la clave proporcionada"""
        return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()

    def _get_signing_key(self, date_stamp: str) -> bytes:
        """Genera la clave de firma en 4 pasos"""
        k_date = self._sign(f"AWS4{self.secret_key}".encode(), date_stamp)
        k_region = self._sign(k_date, self.region)
        k_service = self._sign(k_region, self.service)
        return self._sign(k_service, self.request_type)

    def _create_canonical_request(self, method: str, path: str, headers: dict, content_hash: str) -> str:
        """Crea la solicitud canónica para la firma"""
        sorted_headers = sorted(headers.items(), key=lambda x: x[0].lower())

        canonical_headers = "\n".join([f"{k.lower()}:{v}" for k, v in sorted_headers])
        signed_headers = ";".join([k.lower() for k, v in sorted_headers])

        return "\n".join([
            method,
            path,
            "",  # query string vacío
            canonical_headers,
            "",
            signed_headers,
            content_hash
        ])

    def _generate_signature(self, canonical_request: str, date_stamp: str, amz_date: str, signing_key: bytes) -> str:
        """Genera la firma final"""
        credential_scope = f"{date_stamp}/{self.region}/{self.service}/{self.request_type}"
        string_to_sign = "\n".join([
            "AWS4-HMAC-SHA256",
            amz_date,
            credential_scope,
            hashlib.sha256(canonical_request.encode()).hexdigest()
        ])
        return hmac.new(signing_key, string_to_sign.encode(), hashlib.sha256).hexdigest()

    def _object_url(self, container_key: str, object_key: str) -> tuple:
        """Devuelve (host, path codificado, url) del objeto"""
        host = f"{container_key}.{self.endpoint_host}"
        encoded_path = "/" + quote(object_key.lstrip('/'))
        return host, encoded_path, f"{self.scheme}://{host}{encoded_path}"

    def _signed_headers(self, method: str, host: str, path: str, extra_headers: Optional[dict] = None,
                        now: Optional[datetime.datetime] = None) -> dict:
        """Construye los headers firmados (AWS SigV4) de una petición sin cuerpo"""
        # 1. Preparar parámetros de fecha
        now = now or datetime.datetime.now(datetime.timezone.utc)
        amz_date = now.strftime("%Y%m%dT%H%M%SZ")
        date_stamp = now.strftime("%Y%m%d")

        # 2. Crear headers
        headers = {
            "Host": host,
            "x-amz-content-sha256": EMPTY_PAYLOAD_HASH,
            "x-amz-date": amz_date
        }
        headers.update(extra_headers or {})

        # 3. Crear solicitud canónica
        canonical_request = self._create_canonical_request(
            method=method,
            path=path,
            headers=headers,
            content_hash=EMPTY_PAYLOAD_HASH
        )

        # 4. Generar firma
        signing_key = self._get_signing_key(date_stamp)
        signature = self._generate_signature(
            canonical_request=canonical_request,
            date_stamp=date_stamp,
            amz_date=amz_date,
            signing_key=signing_key
        )

        # 5. Construir headers finales
        credential_scope = f"{date_stamp}/{self.region}/{self.service}/{self.request_type}"
        signed_headers = ";".join(sorted([k.lower() for k in headers.keys()]))

        headers["Authorization"] = (
            f"AWS4-HMAC-SHA256 "
            f"Credential={self.access_key}/{credential_scope}, "
            f"SignedHeaders={signed_headers}, "
            f"Signature={signature}"
        )
        return headers

    def _raise_for_status(self, response: requests.Response, container_key: str, object_key: str,
                          read_body: bool = True) -> None:
        if response.ok:
            return

        # HEAD no trae cuerpo; el código de error S3 solo está en GET
        body = response.text if read_body else ""
        if response.status_code == 404 or any(code in body for code in NOT_FOUND_CODES):
            raise SourceNotFound(container_key, object_key)

        if response.status_code == 412:
            raise SourceUnavailable(container_key, object_key, "object was modified while opening it")

        raise SourceUnavailable(container_key, object_key, f"HTTP {response.status_code}")

    def get_etag(self, container_key: str, object_key: str) -> Optional[str]:
        """Obtiene el ETag actual del objeto (HEAD)"""
        host, path, url = self._object_url(container_key, object_key)
        try:
            response = requests.head(
                url,
                headers=self._signed_headers("HEAD", host, path),
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error de conexión al consultar {container_key}/{object_key}: {str(e)}")
            raise SourceUnavailable(container_key, object_key, str(e))

        try:
            self._raise_for_status(response, container_key, object_key, read_body=False)
            return response.headers.get("ETag")
        finally:
            response.close()

    def open_read_stream(self, container_key: str, object_key: str, allow_modifications: bool = False) -> BlobStream:
        """Abre un stream de lectura secuencial sobre un objeto de Spaces

        Args:
            container_key: Bucket (contenedor) del objeto
            object_key: Ruta del objeto dentro del bucket
            allow_modifications: Si es False se fija el ETag del objeto y la
                lectura falla si el objeto cambia mientras se abre

        Returns:
            BlobStream: el llamador pasa a ser su único dueño

        Raises:
            SourceNotFound: Si el objeto o el bucket no existen
            SourceUnavailable: Si falla la conexión, la autenticación o el objeto cambió
        """
        extra_headers = {}
        if not allow_modifications:
            etag = self.get_etag(container_key, object_key)
            if etag:
                extra_headers["If-Match"] = etag

        host, path, url = self._object_url(container_key, object_key)
        try:
            response = requests.get(
                url,
                headers=self._signed_headers("GET", host, path, extra_headers),
                stream=True,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error de conexión al leer {container_key}/{object_key}: {str(e)}")
            raise SourceUnavailable(container_key, object_key, str(e))

        if not response.ok:
            try:
                logger.error(f"Error en Digital Ocean: {response.status_code} al leer {container_key}/{object_key}")
                self._raise_for_status(response, container_key, object_key)
            finally:
                response.close()

        return BlobStream(response, container_key, object_key)
