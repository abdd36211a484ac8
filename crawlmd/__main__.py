"""CLI entry point: python -m crawlmd --url URL [options]"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from crawlmd import settings

logger = logging.getLogger(__name__)

_FORMATS = ("markdown", "article", "json", "metadata")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="crawlmd",
        description=(
            "Fetch a web page, isolate the readable article and print it as\n"
            "Markdown, JSON or an ordered metadata list. --serve runs the HTTP API."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--url", metavar="URL",
                        help="Page to fetch and convert")
    source.add_argument("--file", metavar="PATH",
                        help="Local HTML file to convert instead of fetching")
    parser.add_argument("--format", choices=_FORMATS, default="markdown",
                        metavar="{" + ",".join(_FORMATS) + "}",
                        help="Output format (default: markdown)")
    parser.add_argument("--raw", action="store_true", default=False,
                        help="Convert the whole page; skip readable-article extraction")
    parser.add_argument("--out", default=None, metavar="FILE",
                        help="Write output to FILE instead of stdout")
    parser.add_argument("--timeout", type=int, default=settings.FETCH_TIMEOUT, metavar="SEC",
                        help=f"Fetch timeout in seconds (default: {settings.FETCH_TIMEOUT})")
    parser.add_argument("--serve", action="store_true", default=False,
                        help="Run the HTTP API instead of converting a single page")
    parser.add_argument("--host", default=settings.API_HOST,
                        help=f"API bind address (default: {settings.API_HOST})")
    parser.add_argument("--port", type=int, default=settings.API_PORT,
                        help=f"API port (default: {settings.API_PORT})")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        metavar="{DEBUG,INFO,WARNING,ERROR}",
                        help=f"Logging level (default: {settings.LOG_LEVEL})")
    return parser


def _print_error(title: str, message: str) -> None:
    from rich.console import Console
    from rich.panel import Panel

    Console(stderr=True).print(
        Panel.fit(message, title=f"[bold]{title}[/bold]", border_style="red"),
    )


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from rich.console import Console

    Console(stderr=True).print(
        f"[bold cyan]crawlmd[/bold cyan] API on "
        f"[green]http://{args.host}:{args.port}[/green]",
    )
    uvicorn.run("crawlmd.api:app", host=args.host, port=args.port,
                log_level=args.log_level.lower())
    return 0


def _render(args: argparse.Namespace, html: str, url: str) -> str:
    from crawlmd.extractors.markdown import format_markdown_article, html_to_markdown
    from crawlmd.extractors.metadata import extract_metadata
    from crawlmd.query import parse

    if args.format == "metadata":
        entries = extract_metadata(html)
        return json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False)

    if args.raw:
        markdown = html_to_markdown(html)
        if args.format == "json":
            return json.dumps({"url": url, "markdown": markdown}, indent=2, ensure_ascii=False)
        return markdown

    result = parse(html, url=url)
    article = result.article
    if args.format == "json":
        payload = {
            **article.model_dump(by_alias=True),
            "url": url,
            "markdown": result.markdown,
            "metadata": result.metadata,
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)
    if args.format == "article":
        return format_markdown_article(
            title=article.title,
            byline=article.byline,
            published_time=article.published_time,
            excerpt=article.excerpt,
            content_markdown=result.markdown,
            site_name=article.site_name,
        )
    return result.markdown


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level, format=settings.LOG_FORMAT, stream=sys.stderr)

    if args.serve:
        return _serve(args)

    if not args.url and not args.file:
        parser.print_usage(sys.stderr)
        print("ERROR: one of --url, --file or --serve is required", file=sys.stderr)
        return 2

    from crawlmd.errors import ExtractionError, FetchError
    from crawlmd.query import fetch_html

    try:
        if args.file:
            html = Path(args.file).read_text(encoding="utf-8", errors="replace")
            url = ""
        else:
            html = fetch_html(args.url, timeout=args.timeout)
            url = args.url
        output = _render(args, html, url)
    except FetchError as exc:
        _print_error("Failed to crawl URL", str(exc))
        return 1
    except ExtractionError as exc:
        _print_error("Failed to parse article", str(exc))
        return 1
    except OSError as exc:
        _print_error("Cannot read input", str(exc))
        return 1

    if args.out:
        Path(args.out).write_text(output + "\n", encoding="utf-8")
        logger.info("wrote %s", args.out)
    else:
        sys.stdout.write(output + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
