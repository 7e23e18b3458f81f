"""CLI entry point for the OpenAPI connector."""

from __future__ import annotations

import asyncio

import uvicorn

from .config import get_settings
from .logging import configure_logging
from .server import build_server


async def _run() -> None:
    settings = get_settings()
    configure_logging(settings.connector_log_level)

    mcp, app = await build_server(settings)
    if app is None:
        await mcp.run_stdio_async()
        return

    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.connector_host, port=settings.connector_port)
    )
    await server.serve()


def main() -> None:
    asyncio.run(_run())


if __name__ == "__main__":
    main()
