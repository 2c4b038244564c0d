"""CLI tool for ProductLens.

Usage:
    python -m productlens.cli extract https://example.com/product
    python -m productlens.cli -o json extract https://example.com/product
    python -m productlens.cli serve --port 8000
"""

import argparse
import asyncio
import json
import sys


def _setup_logging(verbose: bool = False):
    from productlens.core.logging_config import configure_logging

    configure_logging(
        log_format="text",
        log_level="DEBUG" if verbose else "WARNING",
        stream=sys.stderr,
    )


async def _cmd_extract(args) -> int:
    """Run the pipeline once for a single URL."""
    from productlens.services.browser import BrowserManager
    from productlens.services.failure import classify_result
    from productlens.services.fetcher import close_http_client
    from productlens.services.pipeline import run_pipeline

    manager = BrowserManager()
    try:
        result = await run_pipeline(args.url, manager=manager)
    finally:
        await manager.shutdown()
        await close_http_client()

    code = classify_result(result)

    if args.output == "json":
        output = {
            "url": args.url,
            "content": result.text,
            "content_length": len(result.text),
            "source": result.source,
            "static_status": result.static_status,
            "render_error": result.render_error,
            "error": code,
        }
        print(json.dumps(output, indent=2, ensure_ascii=False))
    else:
        print(result.text)
        print(
            f"\n{len(result.text)} chars (source={result.source}, "
            f"static_status={result.static_status})",
            file=sys.stderr,
        )
        if code:
            print(f"[{code}] no usable text extracted", file=sys.stderr)

    return 1 if code else 0


def _cmd_serve(args):
    import uvicorn

    uvicorn.run("productlens.main:app", host=args.host, port=args.port, lifespan="on")


def main():
    parser = argparse.ArgumentParser(
        prog="productlens",
        description="ProductLens CLI - extract LLM-ready text from product pages",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-o", "--output", default="text",
        choices=["json", "text"],
        help="Output format (default: text)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # --- extract ---
    extract_parser = subparsers.add_parser("extract", help="Extract text from a product URL")
    extract_parser.add_argument("url", help="Absolute product page URL")

    # --- serve ---
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "extract":
        _setup_logging(args.verbose)
        sys.exit(asyncio.run(_cmd_extract(args)))
    elif args.command == "serve":
        _cmd_serve(args)


if __name__ == "__main__":
    main()
