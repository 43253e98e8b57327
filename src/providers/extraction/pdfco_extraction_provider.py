"""PDF.co extraction provider adapter.

Implements :class:`IExtractionProvider` against the PDF.co REST API
(``https://api.pdf.co/v1``) with an injected ``httpx.AsyncClient``.

PDF.co only reads documents from URLs, so every flow starts with
:meth:`PDFCoExtractionProvider.upload`: fetch a presigned URL, ``PUT`` the
bytes there, then hand the public URL to the conversion endpoints.

Each provider instance owns an :class:`asyncio.Semaphore` (default 2) held
around every HTTP request, so a parser firing text, info, JSON and table
requests concurrently never exceeds the plan's request rate.
"""

from __future__ import annotations

import asyncio
import csv
import json
import re
from typing import Any

import httpx
import structlog

from src.interfaces.extraction_provider import ExtractedText, IExtractionProvider
from src.models.parsed import ParsedPage
from src.utils.errors import ExtractionError, ExtractionTimeoutError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_BASE_URL = "https://api.pdf.co/v1"
_PAGE_SPLIT_RE = re.compile(r"\f|\[Page \d+\]")


class PDFCoExtractionProvider(IExtractionProvider):
    """OCR-capable PDF extraction through PDF.co.

    Parameters
    ----------
    api_key:
        PDF.co API key, sent as ``x-api-key``.
    base_url:
        API root; overridable for tests.
    http_client:
        Injected client (tests use ``httpx.MockTransport``).
    timeout:
        Per-request timeout in seconds.
    max_concurrency:
        Requests allowed in flight at once for this instance.
    poll_interval:
        Seconds between ``/job/check`` calls for async jobs.
    poll_max_attempts:
        Checks before giving up with :class:`ExtractionTimeoutError`.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = _DEFAULT_BASE_URL,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        max_concurrency: int = 2,
        poll_interval: float = 2.0,
        poll_max_attempts: int = 30,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._poll_interval = poll_interval
        self._poll_max_attempts = poll_max_attempts

    # ------------------------------------------------------------------
    # IExtractionProvider implementation
    # ------------------------------------------------------------------

    async def upload(self, buffer: bytes, file_name: str) -> str:
        presigned = await self._request(
            "GET", "/file/upload/get-presigned-url", params={"name": file_name}
        )
        upload_url = presigned.get("presignedUrl")
        public_url = presigned.get("url")
        if not upload_url or not public_url:
            raise ExtractionError(
                message="Presigned upload response is missing URLs",
                provider_name=self.get_provider_name(),
            )

        async with self._semaphore:
            try:
                response = await self._http.put(
                    upload_url,
                    content=buffer,
                    headers={
                        "x-api-key": self._api_key,
                        "Content-Type": "application/octet-stream",
                    },
                    timeout=self._timeout,
                )
                response.raise_for_status()
            except httpx.TimeoutException as exc:
                raise ExtractionTimeoutError(
                    message=f"Upload of {file_name} timed out",
                    provider_name=self.get_provider_name(),
                ) from exc
            except httpx.HTTPError as exc:
                raise ExtractionError(
                    message=f"Failed to upload {file_name}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

        logger.info("pdfco_upload_complete", file_name=file_name, size=len(buffer))
        return public_url

    async def extract_text(
        self,
        url: str,
        language: str = "eng",
        unwrap: bool = True,
        pages: str | None = None,
        run_async: bool = False,
    ) -> ExtractedText:
        payload = {
            "url": url,
            "async": run_async,
            "inline": True,
            "password": "",
            "pages": pages or "",
            "unwrap": unwrap,
            "rect": "",
            "lang": language or "eng",
            "profiles": "",
        }
        result = await self._request("POST", "/pdf/convert/to/text", json=payload)

        if run_async and result.get("jobId"):
            result = await self.poll_job(result["jobId"])
            if not result.get("body") and result.get("url"):
                result = {**result, "body": await self._fetch_text(result["url"])}

        text = result.get("body") or ""
        page_texts = self.split_pages(text)
        return ExtractedText(
            text=text,
            pages=[ParsedPage(page_number=i + 1, text=t) for i, t in enumerate(page_texts)],
            page_count=result.get("pageCount") or len(page_texts),
            metadata={"remaining_credits": result.get("remainingCredits")},
        )

    async def get_info(self, url: str) -> dict[str, Any]:
        result = await self._request("POST", "/pdf/info", json={"url": url})
        return result.get("info") or {}

    async def extract_json(self, url: str) -> dict[str, Any]:
        payload = {"url": url, "async": False, "inline": True, "password": "", "pages": ""}
        result = await self._request("POST", "/pdf/convert/to/json", json=payload)
        body = result.get("body")
        if not body:
            return result
        if isinstance(body, str):
            try:
                return json.loads(body)
            except json.JSONDecodeError as exc:
                raise ExtractionError(
                    message=f"Structured extraction returned invalid JSON: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
        return body

    async def extract_tables(self, url: str) -> list[list[list[str]]]:
        payload = {"url": url, "async": False, "inline": True, "password": "", "pages": ""}
        result = await self._request("POST", "/pdf/convert/to/csv", json=payload)
        body = result.get("body")
        return self.split_csv_tables(body) if body else []

    async def render_pages(
        self,
        url: str,
        pages: str = "0-2",
        resolution: int = 150,
    ) -> list[str]:
        payload = {"url": url, "pages": pages, "resolution": resolution}
        result = await self._request("POST", "/pdf/convert/to/png", json=payload)
        return list(result.get("urls") or [])

    async def poll_job(self, job_id: str) -> dict[str, Any]:
        for attempt in range(1, self._poll_max_attempts + 1):
            await asyncio.sleep(self._poll_interval)
            result = await self._request("POST", "/job/check", json={"jobId": job_id})
            status = result.get("status")
            if status == "success":
                logger.info("pdfco_job_complete", job_id=job_id, attempts=attempt)
                return result
            if status == "error":
                raise ExtractionError(
                    message=result.get("message") or "Job failed",
                    provider_name=self.get_provider_name(),
                )

        raise ExtractionTimeoutError(
            message=f"Job {job_id} did not finish after {self._poll_max_attempts} checks",
            provider_name=self.get_provider_name(),
        )

    def get_provider_name(self) -> str:
        return "pdfco"

    def is_available(self) -> bool:
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Response parsing
    # ------------------------------------------------------------------

    @staticmethod
    def split_pages(text: str) -> list[str]:
        """Split extracted text on form feeds or ``[Page N]`` markers."""
        pages = [p.strip() for p in _PAGE_SPLIT_RE.split(text)]
        pages = [p for p in pages if p]
        return pages or [text]

    @staticmethod
    def split_csv_tables(csv_text: str) -> list[list[list[str]]]:
        """Split a CSV export into tables at blank lines.

        Each block is read with ``csv.reader``, so quoted cells may hold commas.
        """
        blocks: list[list[str]] = []
        current: list[str] = []
        for line in csv_text.splitlines():
            if line.strip():
                current.append(line)
            elif current:
                blocks.append(current)
                current = []
        if current:
            blocks.append(current)
        return [
            [[cell.strip() for cell in row] for row in csv.reader(block, skipinitialspace=True)]
            for block in blocks
        ]

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        async with self._semaphore:
            try:
                response = await self._http.request(
                    method,
                    f"{self._base_url}{path}",
                    json=json,
                    params=params,
                    headers={"x-api-key": self._api_key},
                    timeout=self._timeout,
                )
                response.raise_for_status()
                data = response.json()
            except httpx.TimeoutException as exc:
                raise ExtractionTimeoutError(
                    message=f"PDF.co request timed out: {path}",
                    provider_name=self.get_provider_name(),
                ) from exc
            except httpx.HTTPStatusError as exc:
                raise ExtractionError(
                    message=f"PDF.co HTTP {exc.response.status_code} on {path}",
                    provider_name=self.get_provider_name(),
                ) from exc
            except httpx.HTTPError as exc:
                raise ExtractionError(
                    message=f"PDF.co request failed on {path}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            except ValueError as exc:
                raise ExtractionError(
                    message=f"PDF.co returned a non-JSON response on {path}",
                    provider_name=self.get_provider_name(),
                ) from exc

        if data.get("error"):
            logger.warning("pdfco_error_payload", path=path, message=data.get("message"))
            raise ExtractionError(
                message=data.get("message") or "PDF.co API error",
                provider_name=self.get_provider_name(),
            )
        return data

    async def _fetch_text(self, url: str) -> str:
        async with self._semaphore:
            try:
                response = await self._http.get(url, timeout=self._timeout)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise ExtractionError(
                    message=f"Failed to download job output: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
        return response.text
