"""HTTP API: crawl a URL into article fields, Markdown and metadata.

Run with ``python -m crawlmd --serve`` or any ASGI server::

    uvicorn crawlmd.api:app

Endpoints are plain ``def`` functions, so FastAPI runs the blocking fetch and
the CPU-bound conversion in its worker threadpool.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from crawlmd import __version__
from crawlmd.errors import ExtractionError, FetchError
from crawlmd.extractors.main_content import extract_article
from crawlmd.extractors.markdown import html_to_markdown
from crawlmd.extractors.metadata import extract_metadata, flatten_metadata
from crawlmd.items import (
    CrawlRequest,
    CrawlResponse,
    ErrorResponse,
    MarkdownRequest,
    MarkdownResponse,
    MetadataEntryModel,
    MetadataResponse,
)
from crawlmd.query import fetch_html, parse

logger = logging.getLogger(__name__)

app = FastAPI(title="crawlmd", version=__version__)


# ---------------------------------------------------------------------------
# Middleware & error handlers
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next: Any) -> Any:
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(
        "%s %s -> %d (%.1f ms)",
        request.method, request.url.path, response.status_code, elapsed_ms,
    )
    return response


def _error(status_code: int, payload: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(by_alias=True, exclude_none=True),
    )


@app.exception_handler(RequestValidationError)
async def on_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if not errors or any(
        "url" in err.get("loc", ()) or tuple(err.get("loc", ())) == ("body",)
        for err in errors
    ):
        return _error(400, ErrorResponse(error="url is required"))
    message = "; ".join(str(err.get("msg", "")) for err in errors)
    return _error(400, ErrorResponse(error="invalid request", message=message))


@app.exception_handler(FetchError)
async def on_fetch_error(request: Request, exc: FetchError) -> JSONResponse:
    logger.warning("fetch failed for %s: %s", exc.url, exc)
    return _error(
        502,
        ErrorResponse(error="Failed to crawl URL", message=str(exc), status=exc.status or None),
    )


@app.exception_handler(ExtractionError)
async def on_extraction_error(request: Request, exc: ExtractionError) -> JSONResponse:
    logger.warning("article extraction failed for %s", exc.url)
    return _error(500, ErrorResponse(error="Failed to parse article", message=str(exc)))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "version": __version__}


@app.post("/crawl", response_model=CrawlResponse, response_model_by_alias=True)
def crawl_url(body: CrawlRequest) -> CrawlResponse:
    html = fetch_html(body.url)
    result = parse(html, url=body.url)
    article = result.article
    return CrawlResponse(
        url=body.url,
        title=article.title,
        content=article.content_html,
        text_content=article.text_content,
        excerpt=article.excerpt,
        byline=article.byline,
        site_name=article.site_name,
        published_time=article.published_time,
        dir=article.dir,
        length=article.length,
        markdown=result.markdown,
        metadata=result.metadata,
    )


@app.post("/markdown", response_model=MarkdownResponse, response_model_by_alias=True)
def markdown(body: MarkdownRequest) -> Any:
    if body.html is not None:
        return MarkdownResponse(url=body.url, markdown=html_to_markdown(body.html))
    if not body.url:
        return _error(400, ErrorResponse(error="url is required"))

    html = fetch_html(body.url)
    if body.article:
        article = extract_article(html, body.url)
        if article is None:
            raise ExtractionError(f"Failed to parse article from {body.url}", url=body.url)
        html = article.content_html
    return MarkdownResponse(url=body.url, markdown=html_to_markdown(html))


@app.post("/metadata", response_model=MetadataResponse, response_model_by_alias=True)
def metadata(body: CrawlRequest) -> MetadataResponse:
    html = fetch_html(body.url)
    entries = extract_metadata(html)
    return MetadataResponse(
        url=body.url,
        entries=[MetadataEntryModel(key=e.key, content=e.content) for e in entries],
        metadata=flatten_metadata(entries),
    )
