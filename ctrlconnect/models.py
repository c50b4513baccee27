"""
Core data models for the dispatch layer.

The request and response types here are plain in-memory implementations of the
interfaces the dispatcher needs from an HTTP framework. Hosts with their own
request/response objects can pass those instead as long as they expose the
same attributes.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Union
from urllib.parse import parse_qs


class HTTPMethod(Enum):
    """Enumeration of supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def method_name(method: Union[HTTPMethod, str, None]) -> str:
    """Return the upper-case method name for an enum member or a raw string."""
    if method is None:
        return ""
    if isinstance(method, HTTPMethod):
        return method.value
    return str(method).upper()


def parse_query_string(query_string: Optional[str]) -> Dict[str, Any]:
    """Parse a query string, collapsing single values like form bodies do."""
    if not query_string:
        return {}
    parsed = parse_qs(query_string.lstrip("?"), keep_blank_values=True)
    return {key: values[0] if len(values) == 1 else values for key, values in parsed.items()}


@dataclass
class Request:
    """Represents an inbound HTTP request.

    ``params`` and ``body`` are populated by upstream routing and body parsing
    middleware. ``query`` may be populated upstream too; when it is not, the
    query string is parsed on demand.
    """

    method: Union[HTTPMethod, str]
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    query_string: str = ""
    params: Optional[Dict[str, Any]] = None
    body: Any = None
    query: Optional[Dict[str, Any]] = None

    @property
    def url(self) -> str:
        """Path including the query string."""
        if self.query_string:
            return f"{self.path}?{self.query_string.lstrip('?')}"
        return self.path

    def get_query_params(self) -> Dict[str, Any]:
        """Get query parameters, parsing the query string if none were populated."""
        if self.query is not None:
            return self.query
        return parse_query_string(self.query_string)

    def get_content_type(self) -> Optional[str]:
        """Get the Content-Type header."""
        return self.headers.get("Content-Type")


class ResponseSink(Protocol):
    """Capabilities the dispatcher needs from an outbound response."""

    status_code: int

    def set_header(self, name: str, value: str) -> None:
        ...

    def write(self, chunk: bytes) -> Optional[Awaitable[None]]:
        ...

    def end(self) -> Optional[Awaitable[None]]:
        ...


@dataclass
class Response:
    """In-memory response sink collecting written chunks."""

    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    chunks: List[bytes] = field(default_factory=list)
    finished: bool = False
    end_calls: int = 0

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def write(self, chunk: bytes) -> None:
        if self.finished:
            raise RuntimeError("write after end")
        self.chunks.append(chunk)

    def end(self) -> None:
        self.end_calls += 1
        self.finished = True

    @property
    def body(self) -> bytes:
        """All chunks written so far, concatenated."""
        return b"".join(self.chunks)

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    def get_json(self) -> Any:
        """Decode the written body as JSON."""
        return json.loads(self.body.decode("utf-8"))
