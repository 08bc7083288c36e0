# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""System Config Service: HTTP entry point."""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from sysconfig_config import EnvConfigProvider, load_service_config
from sysconfig_logging import create_logger, create_uvicorn_log_config

from . import __version__
from .api import create_app
from .bootstrap import build_services

logger = create_logger(name="system-config")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the components on startup and release them on shutdown."""
    logger.info("startup_begin", version=__version__)
    try:
        config = load_service_config(EnvConfigProvider())
        services = build_services(config)
    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise
    app.state.services = services
    logger.info("startup_complete", version=__version__)

    yield

    logger.info("shutdown_begin")
    services.close()
    logger.info("shutdown_complete")


app = create_app(lifespan=lifespan)


def main():
    """Main entry point."""
    config = load_service_config(EnvConfigProvider())
    uvicorn.run(
        "sysconfig_service.main:app",
        host=config.http_host,
        port=config.http_port,
        log_config=create_uvicorn_log_config(config.service_name, config.log_level),
        access_log=False,
    )


if __name__ == "__main__":
    main()
