"""Errores del redimensionador.

Todos heredan de ``ResizeError`` para que la capa HTTP pueda tratarlos juntos;
cada tipo conserva el contexto (contenedor, objeto) con el que se detectó.
"""


class ResizeError(Exception):
    """Base de todos los errores de la operación resize."""


class SourceNotFound(ResizeError):
    def __init__(self, container_key: str, object_key: str) -> None:
        self.container_key = container_key
        self.object_key = object_key
        super().__init__(f"Object '{object_key}' not found in container '{container_key}'")


class SourceUnavailable(ResizeError):
    def __init__(self, container_key: str, object_key: str, reason: str) -> None:
        self.container_key = container_key
        self.object_key = object_key
        self.reason = reason
        super().__init__(f"Storage unavailable for '{container_key}/{object_key}': {reason}")


class DecodeFailure(ResizeError):
    """El códec no pudo interpretar los bytes de origen."""


class EncodeFailure(ResizeError):
    """El códec no pudo producir el formato pedido."""


class ConsumerAborted(ResizeError, BrokenPipeError):
    """El lector cerró el pipe antes de que terminara la escritura."""
