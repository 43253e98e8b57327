"""Unit tests for the PDF.co extraction provider, driven by httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from src.providers.extraction.pdfco_extraction_provider import PDFCoExtractionProvider
from src.utils.errors import ExtractionError, ExtractionTimeoutError

_BASE = "https://api.pdf.co/v1"


def _provider(routes: dict[str, object], **kwargs) -> tuple[PDFCoExtractionProvider, list[httpx.Request]]:
    """Route requests by URL path; values are JSON bodies or callables."""
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": True, "message": "no route"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)

    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    kwargs.setdefault("poll_interval", 0)
    provider = PDFCoExtractionProvider(api_key="pdfco-key", http_client=client, **kwargs)
    return provider, seen


# ---------------------------------------------------------------------------
# Response parsing helpers
# ---------------------------------------------------------------------------


class TestSplitting:
    def test_split_pages_on_form_feed(self) -> None:
        assert PDFCoExtractionProvider.split_pages("one\ftwo\f") == ["one", "two"]

    def test_split_pages_on_markers(self) -> None:
        text = "[Page 1] alpha [Page 2] beta"
        assert PDFCoExtractionProvider.split_pages(text) == ["alpha", "beta"]

    def test_split_pages_without_markers(self) -> None:
        assert PDFCoExtractionProvider.split_pages("single page") == ["single page"]

    def test_split_csv_tables(self) -> None:
        csv_text = 'a,b\n"1", 2\n\n\nx,y\nz,w\n'
        assert PDFCoExtractionProvider.split_csv_tables(csv_text) == [
            [["a", "b"], ["1", "2"]],
            [["x", "y"], ["z", "w"]],
        ]

    def test_split_csv_tables_keeps_quoted_commas(self) -> None:
        csv_text = '"Name","City"\n"Smith, John","Paris"\n'
        assert PDFCoExtractionProvider.split_csv_tables(csv_text) == [
            [["Name", "City"], ["Smith, John", "Paris"]],
        ]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestUpload:
    @pytest.mark.asyncio
    async def test_presigned_upload(self) -> None:
        provider, seen = _provider(
            {
                "/v1/file/upload/get-presigned-url": {
                    "presignedUrl": "https://upload.example/put",
                    "url": "https://files.example/doc.pdf",
                },
                "/put": lambda request: httpx.Response(200),
            }
        )

        url = await provider.upload(b"%PDF-1.4", "doc.pdf")

        assert url == "https://files.example/doc.pdf"
        assert seen[0].url.params["name"] == "doc.pdf"
        assert seen[0].headers["x-api-key"] == "pdfco-key"
        assert seen[1].method == "PUT"
        assert seen[1].content == b"%PDF-1.4"

    @pytest.mark.asyncio
    async def test_missing_urls(self) -> None:
        provider, _ = _provider({"/v1/file/upload/get-presigned-url": {"presignedUrl": ""}})
        with pytest.raises(ExtractionError):
            await provider.upload(b"x", "doc.pdf")


class TestExtractText:
    @pytest.mark.asyncio
    async def test_sync_text(self) -> None:
        provider, seen = _provider(
            {"/v1/pdf/convert/to/text": {"body": "first\fsecond", "pageCount": 2}}
        )

        result = await provider.extract_text("https://files.example/doc.pdf", language="deu")

        assert result.text == "first\fsecond"
        assert [p.text for p in result.pages] == ["first", "second"]
        assert result.page_count == 2
        body = json.loads(seen[0].content)
        assert body["lang"] == "deu"
        assert body["unwrap"] is True
        assert body["async"] is False

    @pytest.mark.asyncio
    async def test_async_job_fetches_result_url(self) -> None:
        provider, _ = _provider(
            {
                "/v1/pdf/convert/to/text": {"jobId": "job-1"},
                "/v1/job/check": {"status": "success", "url": "https://files.example/out.txt"},
                "/out.txt": lambda request: httpx.Response(200, text="from job"),
            }
        )

        result = await provider.extract_text("https://files.example/doc.pdf", run_async=True)

        assert result.text == "from job"
        assert result.page_count == 1

    @pytest.mark.asyncio
    async def test_error_payload(self) -> None:
        provider, _ = _provider(
            {"/v1/pdf/convert/to/text": {"error": True, "message": "Not enough credits"}}
        )

        with pytest.raises(ExtractionError) as exc_info:
            await provider.extract_text("https://files.example/doc.pdf")

        assert exc_info.value.message == "Not enough credits"
        assert exc_info.value.provider_name == "pdfco"

    @pytest.mark.asyncio
    async def test_http_timeout(self) -> None:
        def _timeout(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("slow", request=request)

        provider, _ = _provider({"/v1/pdf/convert/to/text": _timeout})
        with pytest.raises(ExtractionTimeoutError):
            await provider.extract_text("https://files.example/doc.pdf")

    @pytest.mark.asyncio
    async def test_http_status_error(self) -> None:
        provider, _ = _provider(
            {"/v1/pdf/convert/to/text": lambda request: httpx.Response(500, text="oops")}
        )
        with pytest.raises(ExtractionError, match="HTTP 500"):
            await provider.extract_text("https://files.example/doc.pdf")


class TestPolling:
    @pytest.mark.asyncio
    async def test_job_error_status(self) -> None:
        provider, _ = _provider(
            {"/v1/job/check": {"status": "error", "message": "corrupt file"}}
        )
        with pytest.raises(ExtractionError, match="corrupt file"):
            await provider.poll_job("job-1")

    @pytest.mark.asyncio
    async def test_poll_budget_exhausted(self) -> None:
        provider, seen = _provider(
            {"/v1/job/check": {"status": "working"}}, poll_max_attempts=3
        )

        with pytest.raises(ExtractionTimeoutError):
            await provider.poll_job("job-1")
        assert len(seen) == 3


class TestOtherEndpoints:
    @pytest.mark.asyncio
    async def test_get_info(self) -> None:
        provider, _ = _provider({"/v1/pdf/info": {"info": {"PageCount": 3, "Title": "T"}}})
        assert await provider.get_info("u") == {"PageCount": 3, "Title": "T"}

    @pytest.mark.asyncio
    async def test_extract_json_decodes_string_body(self) -> None:
        provider, _ = _provider(
            {"/v1/pdf/convert/to/json": {"body": '{"pages": [{"text": "p1"}]}'}}
        )
        assert await provider.extract_json("u") == {"pages": [{"text": "p1"}]}

    @pytest.mark.asyncio
    async def test_extract_json_invalid_body(self) -> None:
        provider, _ = _provider({"/v1/pdf/convert/to/json": {"body": "{broken"}})
        with pytest.raises(ExtractionError):
            await provider.extract_json("u")

    @pytest.mark.asyncio
    async def test_extract_tables(self) -> None:
        provider, _ = _provider({"/v1/pdf/convert/to/csv": {"body": "h1,h2\na,b\n"}})
        assert await provider.extract_tables("u") == [[["h1", "h2"], ["a", "b"]]]

    @pytest.mark.asyncio
    async def test_render_pages(self) -> None:
        provider, seen = _provider(
            {"/v1/pdf/convert/to/png": {"urls": ["https://img/0.png", "https://img/1.png"]}}
        )

        urls = await provider.render_pages("u", pages="0-1", resolution=96)

        assert urls == ["https://img/0.png", "https://img/1.png"]
        assert json.loads(seen[0].content) == {"url": "u", "pages": "0-1", "resolution": 96}

    def test_availability(self) -> None:
        assert PDFCoExtractionProvider(api_key="").is_available() is False
        assert PDFCoExtractionProvider(api_key="k").get_provider_name() == "pdfco"
