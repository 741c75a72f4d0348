"""Tests for request ID middleware."""

from unittest.mock import MagicMock

import pytest
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import (
    RequestIDMiddleware,
    get_request_id,
    generate_request_id,
    request_id_var
)


def _request(headers: dict) -> MagicMock:
    request = MagicMock(spec=Request)
    request.headers = headers
    return request


class TestGenerateRequestId:
    """Tests for request ID generation."""

    def test_generates_uuid_format(self):
        request_id = generate_request_id()
        # 8-4-4-4-12
        assert len(request_id) == 36
        assert request_id.count("-") == 4

    def test_generates_unique_ids(self):
        ids = [generate_request_id() for _ in range(100)]
        assert len(set(ids)) == 100


class TestGetRequestId:
    """Tests for getting request ID from context."""

    def test_returns_none_outside_context(self):
        token = request_id_var.set(None)
        try:
            assert get_request_id() is None
        finally:
            request_id_var.reset(token)

    def test_returns_id_in_context(self):
        token = request_id_var.set("req-abc")
        try:
            assert get_request_id() == "req-abc"
        finally:
            request_id_var.reset(token)


class TestRequestIDMiddleware:
    """Tests for RequestIDMiddleware."""

    @pytest.fixture
    def middleware(self):
        return RequestIDMiddleware(MagicMock())

    @pytest.mark.asyncio
    async def test_generates_new_request_id(self, middleware):
        """Should generate new request ID when not provided."""
        async def call_next(req):
            assert get_request_id() is not None
            return Response(content="test")

        result = await middleware.dispatch(_request({}), call_next)

        assert len(result.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_uses_provided_request_id(self, middleware):
        """The calling service's ID is kept so both sides log the same one."""
        provided_id = "ai-service.gen_123"

        async def call_next(req):
            assert get_request_id() == provided_id
            return Response(content="test")

        result = await middleware.dispatch(_request({"X-Request-ID": provided_id}), call_next)

        assert result.headers["X-Request-ID"] == provided_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_id", ["has space", "{user_id}", "x" * 129, ""])
    async def test_replaces_malformed_request_id(self, middleware, bad_id):
        async def call_next(req):
            return Response(content="test")

        result = await middleware.dispatch(_request({"X-Request-ID": bad_id}), call_next)

        assert result.headers["X-Request-ID"] != bad_id
        assert len(result.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_context_reset_after_request(self, middleware):
        token = request_id_var.set(None)
        try:
            async def call_next(req):
                return Response(content="test")

            await middleware.dispatch(_request({}), call_next)

            assert get_request_id() is None
        finally:
            request_id_var.reset(token)

    @pytest.mark.asyncio
    async def test_context_reset_when_handler_raises(self, middleware):
        token = request_id_var.set(None)
        try:
            async def call_next(req):
                raise RuntimeError("boom")

            with pytest.raises(RuntimeError):
                await middleware.dispatch(_request({}), call_next)

            assert get_request_id() is None
        finally:
            request_id_var.reset(token)
