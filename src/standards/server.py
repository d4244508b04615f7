"""Engineering standards MCP server.

Run with: python -m standards.server [--root DIR] [--transport stdio|streamable-http]

The server owns one ``StandardsService`` built at startup; each tool is a
thin adapter that calls the service and renders the result as Markdown or
JSON.  Mutating tools refresh the index before they return.
"""

from __future__ import annotations

import argparse
import functools
import logging
import logging.handlers
import os
import re
import sys
import threading
import time
import traceback
from pathlib import Path
from typing import Any, Literal

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from starlette.requests import Request
from starlette.responses import JSONResponse

from standards import call_log, hints, render
from standards import paths as standards_paths
from standards.config import create_default
from standards.errors import StandardsError
from standards.service import StandardsService

SERVER_NAME = "engineering-standards"
SERVER_VERSION = "1.0.0"
DEFAULT_PORT = 3000

ResponseFormat = Literal["markdown", "json"]

# ---------------------------------------------------------------------------
# Logging: stderr always, file handler added once the store root is known
# ---------------------------------------------------------------------------

logger = logging.getLogger("standards")
logger.setLevel(logging.DEBUG)

# Stderr handler (WARNING+): visible in MCP client logs
_stderr_handler = logging.StreamHandler(sys.stderr)
_stderr_handler.setLevel(logging.WARNING)
_stderr_handler.setFormatter(
    logging.Formatter(
        "%(asctime)s [%(process)d] %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"
    )
)
logger.addHandler(_stderr_handler)

_file_handler: logging.Handler | None = None


def _attach_file_log(dot_dir: Path) -> None:
    """Attach a rotating file handler to .standards-mcp/server.log (idempotent)."""
    global _file_handler
    if _file_handler is not None:
        return  # already attached
    dot_dir.mkdir(parents=True, exist_ok=True)
    log_path = dot_dir / "server.log"
    fh = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=2_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(
        logging.Formatter("%(asctime)s [%(process)d] %(levelname)s %(name)s: %(message)s")
    )
    logger.addHandler(fh)
    _file_handler = fh
    logger.info("Standards server started: log attached to %s", log_path)


# ---------------------------------------------------------------------------
# Tool invocation logging: wraps every tool with timing, error
# classification, and response-size capping.  Calls run to completion; there
# is no per-call timeout or cancellation.
#
# Each call runs in a worker thread via anyio.to_thread so the event loop
# stays responsive.  Calls are serialised by a per-server lock: the index
# has a single writer (refresh) and reads never interleave with it.
# ---------------------------------------------------------------------------

# Maximum response size (bytes) returned to the MCP client.
_MAX_RESPONSE_BYTES = 48_000

_READ_ONLY = ToolAnnotations(
    readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=False
)
_DESTRUCTIVE = ToolAnnotations(
    readOnlyHint=False, destructiveHint=True, idempotentHint=False, openWorldHint=False
)


def _cap_response(result: str, name: str) -> str:
    """Truncate an oversized tool response with a hint."""
    if len(result) <= _MAX_RESPONSE_BYTES:
        return result
    logger.warning(
        "TOOL %s response truncated: %d → %d bytes",
        name,
        len(result),
        _MAX_RESPONSE_BYTES,
    )
    return (
        result[:_MAX_RESPONSE_BYTES] + f"\n\n… (truncated from {len(result)} bytes; "
        "use narrower filters or standards_get_metadata)"
    )


def _sanitize_exc(exc: Exception) -> str:
    """Strip filesystem paths from exception messages to avoid leaking internals."""
    msg = str(exc)
    msg = re.sub(r"/(?:Users|home|tmp|var|opt|etc|root)/\S+", "<path>", msg)
    msg = re.sub(r"[A-Z]:\\[\w\\]+", "<path>", msg)
    return msg.strip()


def _logging_tool(server: FastMCP, lock: threading.Lock, **kwargs):
    """Drop-in replacement for ``server.tool()`` that adds invocation logging.

    The returned wrapper is **async**: it dispatches the (sync) tool function
    to a worker thread.
    """
    import anyio

    decorator = server.tool(**kwargs)

    def wrapper(fn):
        @functools.wraps(fn)
        async def logged(*args, **kw):
            name = kwargs.get("name") or fn.__name__
            logger.info("TOOL %s called", name)
            t0 = time.monotonic()

            def _run_in_thread():
                with lock:
                    return fn(*args, **kw)

            try:
                result = await anyio.to_thread.run_sync(_run_in_thread)
                dt = time.monotonic() - t0
                logger.info("TOOL %s completed in %.2fs (%d bytes)", name, dt, len(result))
                call_log.log_call(name, kw, dt * 1000, status="ok")
                return _cap_response(result, name)
            except StandardsError as exc:
                dt = time.monotonic() - t0
                call_log.log_call(name, kw, dt * 1000, status="error", error=str(exc))
                logger.warning(
                    "TOOL %s failed (%s) after %.2fs: %s", name, type(exc).__name__, dt, exc
                )
                raise
            except Exception as exc:
                dt = time.monotonic() - t0
                call_log.log_call(name, kw, dt * 1000, status="crash", error=str(exc))
                logger.error("TOOL %s crashed after %.2fs:\n%s", name, dt, traceback.format_exc())
                raise StandardsError(
                    f"Internal error in {name}: {type(exc).__name__}: {_sanitize_exc(exc)}. "
                    f"Check .standards-mcp/server.log in the standards directory."
                ) from exc

        return decorator(logged)

    return wrapper


# ---------------------------------------------------------------------------
# Tool routing: sync helpers the tools delegate to (tested directly)
# ---------------------------------------------------------------------------


def _route_list(
    service: StandardsService,
    filter_type: str | None = None,
    filter_tier: str | None = None,
    filter_process: str | None = None,
    filter_status: str | None = None,
    response_format: ResponseFormat = "markdown",
) -> str:
    result = service.list_standards(
        type=filter_type, tier=filter_tier, process=filter_process, status=filter_status
    )
    if response_format == "json":
        return hints.response(result, hints=hints.list_hints(result["total_count"]))
    return render.render_hierarchical_index(result)


def _route_get(
    service: StandardsService,
    path: str | None = None,
    type: str | None = None,
    tier: str | None = None,
    process: str | None = None,
    tags: list[str] | None = None,
    response_format: ResponseFormat = "markdown",
) -> str:
    result = service.get_standard(path=path, type=type, tier=tier, process=process, tags=tags)
    if path:
        if response_format == "json":
            return hints.response(result, hints=hints.standard_hints(result["path"]))
        return render.render_standard(result)
    if response_format == "json":
        return hints.response(result, hints=hints.list_hints(result["count"]))
    return render.render_standards(result)


def _route_search(
    service: StandardsService,
    query: str,
    filter_type: str | None = None,
    filter_tier: str | None = None,
    filter_process: str | None = None,
    filter_tags: list[str] | None = None,
    limit: int | None = None,
    response_format: ResponseFormat = "markdown",
) -> str:
    result = service.search_standards(
        query,
        type=filter_type,
        tier=filter_tier,
        process=filter_process,
        tags=filter_tags,
        limit=limit,
    )
    if response_format == "json":
        effective = limit or service.config.search_limit_default
        return hints.response(result, hints=hints.search_hints(query, result["count"], effective))
    return render.render_search_results(result)


def _route_metadata(
    service: StandardsService,
    filter_type: str | None = None,
    filter_tier: str | None = None,
    filter_process: str | None = None,
    filter_tags: list[str] | None = None,
    filter_status: str | None = None,
    response_format: ResponseFormat = "markdown",
) -> str:
    result = service.get_metadata(
        type=filter_type,
        tier=filter_tier,
        process=filter_process,
        tags=filter_tags,
        status=filter_status,
    )
    if response_format == "json":
        return hints.response(result, hints=hints.list_hints(result["count"]))
    return render.render_metadata_list(result)


def _route_create(
    service: StandardsService,
    metadata: dict[str, Any],
    content: str,
    filename: str | None = None,
    response_format: ResponseFormat = "markdown",
) -> str:
    result = service.create_standard(metadata, content, filename)
    if response_format == "json":
        return hints.response(result, hints=hints.mutation_hints(result["path"]))
    return render.render_created(result)


def _route_update(
    service: StandardsService,
    path: str,
    content: str | None = None,
    metadata: dict[str, Any] | None = None,
    version_bump: Literal["major", "minor", "patch"] = "patch",
    response_format: ResponseFormat = "markdown",
) -> str:
    result = service.update_standard(
        path, content=content, metadata=metadata, version_bump=version_bump
    )
    if response_format == "json":
        return hints.response(result, hints=hints.mutation_hints(result["path"]))
    return render.render_updated(result)


# ---------------------------------------------------------------------------
# Server construction
# ---------------------------------------------------------------------------


def build_server(
    service: StandardsService,
    host: str = "127.0.0.1",
    port: int = DEFAULT_PORT,
) -> FastMCP:
    """Create a FastMCP server whose tools operate on *service*."""
    server = FastMCP(
        SERVER_NAME,
        instructions=(
            "Engineering standards knowledge base. Browse with standards_list_index, "
            "find with standards_search, read with standards_get, and record new or "
            "revised standards with standards_create / standards_update."
        ),
        host=host,
        port=port,
    )
    lock = threading.Lock()
    tool = functools.partial(_logging_tool, server, lock)

    @tool(name="standards_list_index", annotations=_READ_ONLY)
    def standards_list_index(
        filter_type: str | None = None,
        filter_tier: str | None = None,
        filter_process: str | None = None,
        filter_status: str | None = None,
        response_format: ResponseFormat = "markdown",
    ) -> str:
        """Browse all standards grouped by type, tier, and process.

        filter_type: principle | standard | practice | tech-stack | process
        filter_tier: frontend | backend | database | infrastructure | security
        filter_process: development | testing | delivery | operations
        filter_status: active | draft | deprecated
        """
        return _route_list(
            service, filter_type, filter_tier, filter_process, filter_status, response_format
        )

    @tool(name="standards_get", annotations=_READ_ONLY)
    def standards_get(
        path: str | None = None,
        type: str | None = None,
        tier: str | None = None,
        process: str | None = None,
        tags: list[str] | None = None,
        response_format: ResponseFormat = "markdown",
    ) -> str:
        """Read one standard by path, or all standards matching type/tier/process/tags.

        path: file name, e.g. 'standard-backend-development-api-design-active.md'.
            Shortened names are accepted when they match exactly one standard.
        tags: every listed tag must be present.
        """
        return _route_get(service, path, type, tier, process, tags, response_format)

    @tool(name="standards_search", annotations=_READ_ONLY)
    def standards_search(
        query: str,
        filter_type: str | None = None,
        filter_tier: str | None = None,
        filter_process: str | None = None,
        filter_tags: list[str] | None = None,
        limit: int | None = None,
        response_format: ResponseFormat = "markdown",
    ) -> str:
        """Full-text search across standard bodies and metadata, ranked by score.

        query: at least 2 characters, case-insensitive.
        limit: max results (default 10).
        """
        return _route_search(
            service,
            query,
            filter_type,
            filter_tier,
            filter_process,
            filter_tags,
            limit,
            response_format,
        )

    @tool(name="standards_get_metadata", annotations=_READ_ONLY)
    def standards_get_metadata(
        filter_type: str | None = None,
        filter_tier: str | None = None,
        filter_process: str | None = None,
        filter_tags: list[str] | None = None,
        filter_status: str | None = None,
        response_format: ResponseFormat = "markdown",
    ) -> str:
        """Metadata of matching standards without their content."""
        return _route_metadata(
            service,
            filter_type,
            filter_tier,
            filter_process,
            filter_tags,
            filter_status,
            response_format,
        )

    @tool(name="standards_create", annotations=_DESTRUCTIVE)
    def standards_create(
        metadata: dict[str, Any],
        content: str,
        filename: str | None = None,
        response_format: ResponseFormat = "markdown",
    ) -> str:
        """Create a standard. Version 1.0.0 and timestamps are set automatically.

        metadata: {type, tier, process, tags, author, status}
        filename: optional title; the file name is always
            {type}-{tier}-{process}-{title}-{status}.md
        """
        return _route_create(service, metadata, content, filename, response_format)

    @tool(name="standards_update", annotations=_DESTRUCTIVE)
    def standards_update(
        path: str,
        content: str | None = None,
        metadata: dict[str, Any] | None = None,
        version_bump: Literal["major", "minor", "patch"] = "patch",
        response_format: ResponseFormat = "markdown",
    ) -> str:
        """Update a standard's content and/or metadata.

        The version is bumped (patch by default) unless metadata.version is given.
        Changing type, tier, process, or status renames the file.
        """
        return _route_update(service, path, content, metadata, version_bump, response_format)

    @server.custom_route("/health", methods=["GET"])
    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "status": "ok",
                "server": SERVER_NAME,
                "version": SERVER_VERSION,
                "standards": service.stats(),
            }
        )

    return server


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Engineering standards MCP server")
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help=f"Standards directory (default: ${standards_paths.ROOT_ENV_VAR} or ./standards)",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "streamable-http"],
        default="stdio",
        help="MCP transport (default: stdio)",
    )
    parser.add_argument("--host", default="127.0.0.1", help="HTTP bind address")
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ.get("PORT", DEFAULT_PORT)),
        help=f"HTTP port (default: $PORT or {DEFAULT_PORT})",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Run the standards MCP server."""
    args = _parse_args(argv)
    root = standards_paths.resolve_store_root(args.root)
    dot_dir = standards_paths.store_dir(root)
    _attach_file_log(dot_dir)
    create_default(dot_dir)
    service = StandardsService.from_root(root)
    service.start()
    call_log.set_store(root, len(service.index.documents))
    server = build_server(service, host=args.host, port=args.port)

    try:
        server.run(transport=args.transport)
    except KeyboardInterrupt:
        logger.info("Standards server stopped (keyboard interrupt)")
    except Exception:
        logger.critical("Standards server crashed:\n%s", traceback.format_exc())
        raise


if __name__ == "__main__":
    main()
