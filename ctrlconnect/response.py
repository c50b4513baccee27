"""
Response writer serializing results and errors to a response sink.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .exceptions import ControllerError
from .models import ResponseSink

# Set up logger for this module
logger = logging.getLogger(__name__)

BINARY_TYPES = (bytes, bytearray, memoryview)

FailureCallback = Callable[..., Any]


def _jsonable(data: Any) -> Any:
    """Convert pydantic models and structured errors to plain data."""
    if isinstance(data, ControllerError):
        return data.to_dict()
    if hasattr(data, "model_dump"):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_jsonable(item) for item in data]
    if isinstance(data, tuple):
        return [_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: _jsonable(value) for key, value in data.items()}
    return data


def serialize(data: Any) -> bytes:
    """Serialize ``data`` to bytes: binary payloads unchanged, everything else as JSON."""
    if isinstance(data, BINARY_TYPES):
        return bytes(data)
    return json.dumps(_jsonable(data)).encode("utf-8")


class ResponseWriter:
    """Writes data to a response sink and closes it.

    Writes after ``end()`` are rejected and reported, never raised. ``end()``
    terminates the sink only after every write that is still in flight has
    settled.
    """

    def __init__(self, response: ResponseSink, on_error: Optional[FailureCallback] = None):
        self.response = response
        self.on_error = on_error
        self.closed = bool(getattr(response, "finished", False))
        self._pending: List[asyncio.Future] = []
        self._end_future: Optional[asyncio.Future] = None
        self._writing_error = False
        self._reported_failure = False

    @property
    def pending_write_count(self) -> int:
        return sum(1 for write in self._pending if not write.done())

    def handle_write_error(self, err: BaseException) -> None:
        """Report a failure raised while generating the response.

        Failures while an error is being written are only logged, reporting them
        again would try to write yet another error.
        """
        logger.error(f"Error while generating client response: {err!r}")
        if self.on_error is not None and not self._writing_error:
            self._reported_failure = True
            self.on_error(ControllerError.from_exception(err))

    def write(
        self,
        data: Any,
        headers: Optional[Dict[str, str]] = None,
        status: Optional[int] = None,
    ) -> "ResponseWriter":
        """Write ``data`` to the response.

        Args:
            data: Bytes-like data is written raw, anything else JSON encoded
            headers: Response headers to set
            status: HTTP status code, defaults to 200

        Returns:
            This writer, for chaining
        """
        if self.closed:
            self.handle_write_error(
                ControllerError.server("Cannot write to response. Stream is already closed.")
            )
            return self

        try:
            chunk = serialize(data)
        except Exception as e:
            self.handle_write_error(
                ControllerError.server("Error while generating server response.", inner_error=e)
            )
            return self

        self.response.status_code = status or 200
        for name, value in (headers or {}).items():
            self.response.set_header(name, value)
        self._write_to_stream(chunk)
        return self

    def _write_to_stream(self, chunk: bytes) -> None:
        try:
            result = self.response.write(chunk)
        except Exception as e:
            self.handle_write_error(e)
            return
        if inspect.isawaitable(result):
            future = asyncio.ensure_future(result)
            future.add_done_callback(self._write_done)
            self._pending.append(future)

    def _write_done(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        err = future.exception()
        if err is not None:
            self.handle_write_error(err)

    def json(self, data: Any, status: Optional[int] = None) -> Awaitable[None]:
        """Write ``data`` JSON encoded with ``Content-Type: application/json`` and close."""
        return self.write(data, headers={"Content-Type": "application/json"}, status=status).end()

    def binary(self, content: Any, content_type: str = "application/octet-stream") -> Awaitable[None]:
        """Write raw bytes with the given content type and close."""
        return self.write(content, headers={"Content-Type": content_type}).end()

    def dicom_file(self, content: Any) -> Awaitable[None]:
        """Send a DICOM file to the client and close."""
        return self.binary(content, content_type="application/dicom")

    def error(self, err: Any) -> Awaitable[None]:
        """Write ``err`` as a structured error with its status and close.

        Anything other than a ControllerError is wrapped as a server error (500).
        """
        error = ControllerError.from_exception(err)
        self._writing_error = True
        return self.json(error, error.status or 500)

    def end(self) -> Awaitable[None]:
        """Close the writer. The sink ends once pending writes have settled.

        If a write failure was reported to ``on_error`` the sink is left open,
        so the error can still be written to it.

        Calling ``end()`` more than once returns the same awaitable.
        """
        self.closed = True
        if self._end_future is None:
            self._end_future = asyncio.ensure_future(self._finish())
        return self._end_future

    async def _finish(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        if getattr(self.response, "finished", False):
            return
        if self._reported_failure and not self._writing_error:
            # The failure sink now owns the response and writes the error body
            logger.debug("Not ending response after a reported write failure")
            return
        try:
            result = self.response.end()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self.handle_write_error(e)


def response(res: ResponseSink, on_error: Optional[FailureCallback] = None) -> ResponseWriter:
    """Create a ResponseWriter for ``res``."""
    return ResponseWriter(res, on_error)
