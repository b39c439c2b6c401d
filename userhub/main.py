"""Run the users development backend with uvicorn."""
import logging

import uvicorn

from userhub.app import app
from userhub.core.config import Config


def configure_logging() -> None:
    level = logging.INFO if Config.ENVIRONMENT == "development" else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()],
    )


if __name__ == "__main__":
    configure_logging()
    Config.validate()
    logging.getLogger(__name__).info(f"Serving users development API on {Config.DEV_SERVER_HOST}:{Config.USERS_API_PORT}")
    uvicorn.run(app, host=Config.DEV_SERVER_HOST, port=Config.USERS_API_PORT)
