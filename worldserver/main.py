"""
worldserver entry point.

Run with ``python -m worldserver.main`` or point uvicorn at
``worldserver.main:app``.
"""

import uvicorn

from .app.factory import create_app
from .config import get_config
from .structured_logging.enhanced_logging_config import get_logger, setup_logging

config = get_config()
setup_logging(config.logging.environment, config.logging.level, config.logging.format)

logger = get_logger(__name__)

app = create_app(config)


def main() -> None:
    """Serve the application with uvicorn."""
    logger.info("Starting worldserver", host=config.server.host, port=config.server.port)
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
