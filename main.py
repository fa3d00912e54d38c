"""
Alchemist merge API entry point.
"""

import uvicorn
from loguru import logger

from alchemist.api import create_app
from alchemist.logger import setup_logging
from alchemist.settings import global_settings


def main() -> None:
    setup_logging(global_settings.log_level, global_settings.log_file or None)

    app = create_app(global_settings)
    logger.info(
        f"AI Merge API running on http://{global_settings.host}:{global_settings.port}/merge"
    )
    uvicorn.run(
        app,
        host=global_settings.host,
        port=global_settings.port,
        log_level=global_settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
