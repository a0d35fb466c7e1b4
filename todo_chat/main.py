"""
Main module: serve the todo/chat API with uvicorn.
"""

from __future__ import annotations

import asyncio
import logging

import uvicorn

from todo_chat.api import create_app
from todo_chat.config import Configuration
from todo_chat.logging_utils import setup_logging


async def main() -> None:
    """Main entry point - HTTP server with graceful shutdown handled by uvicorn."""
    config = Configuration()
    setup_logging(config.get_logging_config())

    server_config = config.get_server_config()
    app = create_app(config)

    uvicorn_config = uvicorn.Config(
        app,
        host=server_config["host"],
        port=server_config["port"],
        log_level=config.get_logging_config()["level"].lower(),
    )
    server = uvicorn.Server(uvicorn_config)

    logging.info(
        f"Server running on http://{server_config['host']}:{server_config['port']}"
        f"{server_config['api_prefix']}"
    )
    await server.serve()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("Keyboard interrupt received, shutting down...")


if __name__ == "__main__":
    run()
