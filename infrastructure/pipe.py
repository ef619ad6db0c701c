"""Pipe en memoria con límite de buffer entre un productor y un consumidor.

El productor (un hilo que decodifica, redimensiona y codifica) escribe en
``Pipe.writer``; quien llama lee de ``Pipe.reader`` como de cualquier stream.

- ``write`` bloquea mientras el buffer está lleno (backpressure).
- ``fail(exc)`` cierra la escritura con un error: el lector lo recibe en su
  siguiente ``read`` en lugar de un EOF, así nunca ve un resultado truncado.
- Si el lector cierra antes de tiempo, el ``write`` bloqueado se despierta con
  ``ConsumerAborted`` para que el productor libere sus recursos.
"""
import threading
from typing import Iterator, Optional

from domain.exceptions import ConsumerAborted

DEFAULT_BUFFER_SIZE = 64 * 1024


class Pipe:
    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE):
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")

        self.buffer_size = buffer_size
        self._buffer = bytearray()
        self._condition = threading.Condition()
        self._writer_done = False
        self._reader_closed = False
        self._error: Optional[BaseException] = None

        self.writer = PipeWriter(self)
        self.reader = PipeReader(self)

    # -- lado productor --

    def _write(self, data: bytes) -> int:
        view = memoryview(data)
        written = 0
        with self._condition:
            if self._writer_done:
                raise ValueError("write to a completed pipe")

            while written < len(view):
                while len(self._buffer) >= self.buffer_size and not self._reader_closed:
                    self._condition.wait()

                if self._reader_closed:
                    raise ConsumerAborted("Reader closed the pipe")

                room = self.buffer_size - len(self._buffer)
                chunk = view[written:written + room]
                self._buffer.extend(chunk)
                written += len(chunk)
                self._condition.notify_all()

        return written

    def _complete(self, error: Optional[BaseException] = None) -> None:
        with self._condition:
            if self._writer_done:
                return
            self._writer_done = True
            self._error = error
            self._condition.notify_all()

    # -- lado consumidor --

    def _read(self, size: int = -1) -> bytes:
        with self._condition:
            while not self._buffer and not self._writer_done and not self._reader_closed:
                self._condition.wait()

            if self._reader_closed:
                raise ValueError("read from a closed pipe")

            if not self._buffer:
                if self._error is not None:
                    raise self._error
                return b""

            if size is None or size < 0 or size >= len(self._buffer):
                data = bytes(self._buffer)
                self._buffer.clear()
            else:
                data = bytes(self._buffer[:size])
                del self._buffer[:size]

            self._condition.notify_all()
            return data

    def _close_reader(self) -> None:
        with self._condition:
            self._reader_closed = True
            self._buffer.clear()
            self._condition.notify_all()

    @property
    def writer_done(self) -> bool:
        with self._condition:
            return self._writer_done

    @property
    def reader_closed(self) -> bool:
        with self._condition:
            return self._reader_closed


class PipeWriter:
    """Extremo de escritura; Pillow lo usa como fichero de salida."""

    def __init__(self, pipe: Pipe):
        self._pipe = pipe

    def write(self, data) -> int:
        return self._pipe._write(data)

    def flush(self) -> None:
        # Lo escrito ya es visible para el lector
        pass

    def close(self) -> None:
        self._pipe._complete()

    def fail(self, error: BaseException) -> None:
        self._pipe._complete(error)

    @property
    def closed(self) -> bool:
        return self._pipe.writer_done

    @property
    def aborted(self) -> bool:
        return self._pipe.reader_closed

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc is not None:
            self.fail(exc)
        else:
            self.close()
        return False


class PipeReader:
    """Extremo de lectura que se entrega a quien pidió el resultado."""

    def __init__(self, pipe: Pipe):
        self._pipe = pipe
        # Hilo que alimenta el pipe, si lo hay
        self.producer: Optional[threading.Thread] = None

    def read(self, size: int = -1) -> bytes:
        return self._pipe._read(size)

    def readable(self) -> bool:
        return True

    def close(self) -> None:
        self._pipe._close_reader()

    @property
    def closed(self) -> bool:
        return self._pipe.reader_closed

    def iter_chunks(self, chunk_size: int = DEFAULT_BUFFER_SIZE) -> Iterator[bytes]:
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
