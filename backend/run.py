"""Run the procmatch API with uvicorn. Host, port and reload come from Settings."""

import logging

import uvicorn

from procmatch.config import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=logging.INFO)
    logger.info("Starting procmatch API on port %d (env=%s)", settings.port, settings.procmatch_env)
    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.reload_enabled,
    )


if __name__ == "__main__":
    main()
