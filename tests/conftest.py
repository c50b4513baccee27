"""
Pytest configuration and shared fixtures.
"""

from typing import Any, List

import pytest

from ctrlconnect.models import HTTPMethod, Request, Response


@pytest.fixture
def anyio_backend():
    """Run anyio tests on asyncio only (trio is not installed)."""
    return "asyncio"


class FailureRecorder:
    """Failure sink recording every call. ``None`` means called without an error."""

    def __init__(self):
        self.calls: List[Any] = []

    def __call__(self, err=None):
        self.calls.append(err)

    @property
    def errors(self) -> List[Any]:
        return [err for err in self.calls if err is not None]


@pytest.fixture
def failures():
    return FailureRecorder()


@pytest.fixture
def response():
    return Response()


@pytest.fixture
def request_factory():
    def make(method=HTTPMethod.GET, path="/items", **kwargs):
        return Request(method=method, path=path, **kwargs)
    return make
