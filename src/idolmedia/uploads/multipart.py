"""Streaming multipart/form-data parsing.

Wraps the python-multipart push parser so a request body can be consumed
chunk by chunk as an async sequence of field and file events. File parts
are exposed as byte streams fed while the body is still arriving; nothing
buffers the whole request.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import AsyncIterator, Deque, List, Mapping, Optional, Tuple, Union

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from idolmedia.core.exceptions import PayloadTooLarge, ValidationError

logger = logging.getLogger(__name__)

_EOF = object()


class FileStream:
    """Bytes of one file part, delivered in arrival order.

    The parser feeds chunks, then either closes the stream or fails it with
    the error that ended the part. Iterating yields chunks and raises that
    error, if any, once the chunks before it are consumed.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._discarded = False
        self.closed = False
        self.size = 0

    def feed(self, chunk: bytes) -> None:
        self.size += len(chunk)
        if not self._discarded:
            self._queue.put_nowait(chunk)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_EOF)

    def fail(self, exc: BaseException) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(exc)

    def discard(self) -> None:
        """Drop buffered and future chunks; the parser keeps draining the part."""
        self._discarded = True
        terminal = None
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if not isinstance(item, bytes):
                terminal = item
        if terminal is not None:
            self._queue.put_nowait(terminal)

    async def __aiter__(self):
        while True:
            item = await self._queue.get()
            if item is _EOF or isinstance(item, BaseException):
                # Leave the terminal marker for any later reader
                self._queue.put_nowait(item)
                if item is _EOF:
                    return
                raise item
            yield item

    async def read(self) -> bytes:
        """Collect the whole part."""
        return b"".join([chunk async for chunk in self])


@dataclass(frozen=True)
class FieldEvent:
    name: str
    value: str


@dataclass(frozen=True)
class FileEvent:
    field_name: str
    filename: str
    content_type: str
    stream: FileStream


PartEvent = Union[FieldEvent, FileEvent]


@dataclass
class _PartState:
    headers: List[Tuple[bytes, bytes]] = field(default_factory=list)
    name: str = ""
    is_file: bool = False
    skip: bool = False
    data: bytearray = field(default_factory=bytearray)
    stream: Optional[FileStream] = None


class StreamingMultipartParser:
    """Turn a multipart body stream into field and file events.

    Limits on file count, bytes per file, field count and bytes per field
    fail the whole session with ``PayloadTooLarge``. After the first error
    the rest of the body is still read and thrown away, so the client is
    never left blocked on a half-consumed request; the error is raised once
    the body is exhausted.
    """

    def __init__(
        self,
        headers: Mapping[str, str],
        stream: AsyncIterator[bytes],
        max_files: int = 1,
        max_file_size: int = 100 * 1024 * 1024,
        max_fields: int = 50,
        max_field_size: int = 64 * 1024,
        charset: str = "utf-8",
    ):
        self._headers = headers
        self._stream = stream
        self.max_files = max_files
        self.max_file_size = max_file_size
        self.max_fields = max_fields
        self.max_field_size = max_field_size
        self._charset = charset

        self._pending: Deque[PartEvent] = deque()
        self._part: Optional[_PartState] = None
        self._header_field = b""
        self._header_value = b""
        self._file_count = 0
        self._field_count = 0
        self._finished = False
        self._error: Optional[Exception] = None

    def _boundary(self) -> bytes:
        content_type = ""
        for key, value in self._headers.items():
            if key.lower() == "content-type":
                content_type = value
                break
        media_type, params = parse_options_header(content_type)
        if media_type != b"multipart/form-data":
            raise ValidationError("Content-Type must be multipart/form-data")
        boundary = params.get(b"boundary")
        if not boundary:
            raise ValidationError("Missing multipart boundary")
        return boundary

    async def events(self) -> AsyncIterator[PartEvent]:
        """Yield events in arrival order.

        Raises:
            ValidationError: If the body is not well-formed multipart
            PayloadTooLarge: If a configured limit was exceeded
        """
        parser = MultipartParser(
            self._boundary(),
            callbacks={
                "on_part_begin": self._on_part_begin,
                "on_part_data": self._on_part_data,
                "on_part_end": self._on_part_end,
                "on_header_field": self._on_header_field,
                "on_header_value": self._on_header_value,
                "on_header_end": self._on_header_end,
                "on_headers_finished": self._on_headers_finished,
                "on_end": self._on_end,
            },
        )

        try:
            async for chunk in self._stream:
                if self._error is not None:
                    continue
                try:
                    parser.write(chunk)
                except MultipartParseError as e:
                    self._fail(ValidationError(f"Malformed multipart body: {e}"))
                while self._pending:
                    yield self._pending.popleft()

            if self._error is None:
                parser.finalize()
                while self._pending:
                    yield self._pending.popleft()
                if not self._finished:
                    self._fail(ValidationError("Unexpected end of multipart body"))
        except Exception as e:
            self._fail(e)
            raise
        finally:
            # Consumer walked away or the body broke off mid-part
            if self._part is not None and self._part.stream is not None:
                self._part.stream.fail(self._error or ValidationError("Upload aborted"))

        if self._error is not None:
            raise self._error

    def _fail(self, exc: Exception) -> None:
        if self._error is not None:
            return
        self._error = exc
        logger.warning(f"Multipart parsing stopped: {exc}")
        if self._part is not None:
            self._part.skip = True
            if self._part.stream is not None:
                self._part.stream.fail(exc)

    def _on_part_begin(self) -> None:
        self._part = _PartState()
        self._header_field = b""
        self._header_value = b""

    def _on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def _on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def _on_header_end(self) -> None:
        if self._part is not None:
            self._part.headers.append((self._header_field.lower(), self._header_value))
        self._header_field = b""
        self._header_value = b""

    def _on_headers_finished(self) -> None:
        part = self._part
        if part is None or self._error is not None:
            return

        headers = dict(part.headers)
        _, options = parse_options_header(headers.get(b"content-disposition"))
        if b"name" not in options:
            self._fail(ValidationError("Multipart part without a name"))
            return
        part.name = options[b"name"].decode(self._charset, errors="replace")

        if b"filename" not in options:
            self._field_count += 1
            if self._field_count > self.max_fields:
                self._fail(PayloadTooLarge(f"Too many fields; at most {self.max_fields} allowed"))
            return

        part.is_file = True
        self._file_count += 1
        if self._file_count > self.max_files:
            self._fail(PayloadTooLarge(f"Too many files; at most {self.max_files} allowed"))
            return

        filename = options[b"filename"].decode(self._charset, errors="replace")
        content_type = headers.get(b"content-type", b"application/octet-stream")
        part.stream = FileStream()
        self._pending.append(
            FileEvent(
                field_name=part.name,
                filename=filename,
                content_type=content_type.decode("latin-1").strip(),
                stream=part.stream,
            )
        )

    def _on_part_data(self, data: bytes, start: int, end: int) -> None:
        part = self._part
        if part is None or part.skip or self._error is not None:
            return

        chunk = data[start:end]
        if part.stream is not None:
            if part.stream.size + len(chunk) > self.max_file_size:
                limit_mb = self.max_file_size // (1024 * 1024)
                self._fail(
                    PayloadTooLarge(f"File exceeds maximum allowed size of {limit_mb}MB")
                )
                return
            part.stream.feed(chunk)
        elif not part.is_file:
            if len(part.data) + len(chunk) > self.max_field_size:
                self._fail(PayloadTooLarge(f"Field {part.name} is too large"))
                return
            part.data.extend(chunk)

    def _on_part_end(self) -> None:
        part = self._part
        self._part = None
        if part is None or part.skip or self._error is not None:
            return
        if part.stream is not None:
            part.stream.close()
        elif not part.is_file:
            self._pending.append(
                FieldEvent(name=part.name, value=part.data.decode(self._charset, errors="replace"))
            )

    def _on_end(self) -> None:
        self._finished = True
