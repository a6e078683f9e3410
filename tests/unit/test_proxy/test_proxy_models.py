"""Unit tests for the proxy request, response and emitter."""

import asyncio

import pytest

from src.proxy.errors import ResponseAlreadySentError
from src.proxy.models import (
    ProxyRequest,
    parse_cookie_header,
    template_vars_from_headers,
)
from src.proxy.response import ContentEmitter, ProxyResponse
from src.templating.renderer import TemplateRenderError, TemplateRenderer


class TestParseCookieHeader:
    """Tests for parse_cookie_header."""

    def test_parses_in_order(self) -> None:
        """Cookies keep header order."""
        assert list(parse_cookie_header("b=2; a=1; c=3")) == ["b", "a", "c"]

    def test_skips_malformed_pairs(self) -> None:
        """Pairs without '=' or a name are ignored."""
        assert parse_cookie_header("a=1; junk; =x; b=2") == {"a": "1", "b": "2"}

    def test_first_occurrence_wins(self) -> None:
        """Repeated names keep the first value."""
        assert parse_cookie_header("a=1; a=2") == {"a": "1"}

    def test_strips_quotes(self) -> None:
        """Quoted values are unquoted."""
        assert parse_cookie_header('a="x y"') == {"a": "x y"}


class TestProxyRequest:
    """Tests for ProxyRequest."""

    def test_header_names_lowercased(self) -> None:
        """Header lookups are case-insensitive."""
        request = ProxyRequest(headers={"X-Tracer": "abc"}, method="get")

        assert request.tracer == "abc"
        assert request.method == "GET"

    def test_missing_tracer(self) -> None:
        """Requests without a tracer get a placeholder."""
        assert ProxyRequest().tracer == "no-tracer"

    def test_from_raw_parses_cookies(self) -> None:
        """from_raw parses the cookie header."""
        request = ProxyRequest.from_raw(
            "GET", "/", {"Cookie": "a=1; b=2"}, remote_address="10.0.0.1"
        )

        assert request.cookies == {"a": "1", "b": "2"}
        assert request.remote_address == "10.0.0.1"

    def test_content_type_without_parameters(self) -> None:
        """content_type drops parameters and case."""
        request = ProxyRequest(
            headers={"Content-Type": "Text/CX-Fragment; charset=utf-8"}
        )
        assert request.content_type == "text/cx-fragment"

    def test_merge_template_vars(self) -> None:
        """Merging adds and overrides but never removes."""
        request = ProxyRequest(template_vars={"a": 1, "b": 2})

        request.merge_template_vars({"b": 3, "c": 4})

        assert request.template_vars == {"a": 1, "b": 3, "c": 4}

    def test_template_vars_from_headers(self) -> None:
        """Header names become lower-case variable names."""
        assert template_vars_from_headers({"X-Custom": "v"}) == {"x-custom": "v"}


class TestProxyResponse:
    """Tests for ProxyResponse."""

    def test_end_writes_once(self) -> None:
        """A second end() is refused."""
        response = ProxyResponse()
        response.end("body")

        with pytest.raises(ResponseAlreadySentError):
            response.end("again")
        assert response.body == "body"
        assert response.write_count == 1

    def test_headers_frozen_after_write_head(self) -> None:
        """Headers cannot change once sent."""
        response = ProxyResponse()
        response.write_head(201, {"X-A": "1"})

        assert response.get_header("x-a") == "1"
        with pytest.raises(ResponseAlreadySentError):
            response.set_header("x-b", "2")
        with pytest.raises(ResponseAlreadySentError):
            response.write_head(200)

    def test_end_sends_default_head(self) -> None:
        """end() without write_head() sends a 200."""
        response = ProxyResponse()
        response.end("x")

        assert response.headers_sent is True
        assert response.status_code == 200


class TestContentEmitter:
    """Tests for ContentEmitter."""

    def test_emits_content_with_default_content_type(self) -> None:
        """Content is written as HTML unless a type is set."""
        request, response = ProxyRequest(), ProxyResponse()

        asyncio.run(ContentEmitter().emit(request, response, "<p>x</p>"))

        assert response.body == "<p>x</p>"
        assert response.get_header("content-type") == "text/html; charset=utf-8"

    def test_keeps_existing_content_type(self) -> None:
        """A content type set earlier is kept."""
        request, response = ProxyRequest(), ProxyResponse()
        response.set_header("content-type", "application/json")

        asyncio.run(ContentEmitter().emit(request, response, "{}"))

        assert response.get_header("content-type") == "application/json"

    def test_renders_with_template_vars(self) -> None:
        """With a renderer the content is rendered against template vars."""
        request = ProxyRequest(template_vars={"x-custom": "hi", "name": "page"})
        response = ProxyResponse()
        emitter = ContentEmitter(renderer=TemplateRenderer())

        asyncio.run(
            emitter.emit(request, response, "{{ name }}:{{ vars['x-custom'] }}")
        )

        assert response.body == "page:hi"

    def test_render_failure_written_as_raw_500(self) -> None:
        """Content that is not a valid template still gets one response."""
        request, response = ProxyRequest(), ProxyResponse()
        emitter = ContentEmitter(renderer=TemplateRenderer())

        error = asyncio.run(
            emitter.emit(request, response, "<script>x = '{{'</script>")
        )

        assert isinstance(error, TemplateRenderError)
        assert response.status_code == 500
        assert response.write_count == 1
        assert response.body.startswith("Failed to render template")
        assert response.get_header("content-type") == "text/plain; charset=utf-8"

    def test_render_failure_through_bound_writer(self) -> None:
        """Writers handed to handlers answer render failures the same way."""
        request, response = ProxyRequest(), ProxyResponse()
        writer = ContentEmitter(renderer=TemplateRenderer()).writer_for(
            request, response
        )

        asyncio.run(writer("{% if %}"))

        assert response.status_code == 500
        assert response.write_count == 1

    def test_successful_emit_returns_none(self) -> None:
        """No error is reported when the content is written."""
        request, response = ProxyRequest(), ProxyResponse()

        assert asyncio.run(ContentEmitter().emit(request, response, "ok")) is None

    def test_writer_for_binds_request(self) -> None:
        """The bound writer emits to its own response."""
        request, response = ProxyRequest(), ProxyResponse()
        writer = ContentEmitter().writer_for(request, response)

        asyncio.run(writer("bound"))

        assert response.body == "bound"
