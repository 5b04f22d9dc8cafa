"""
Start the SMS transaction reader API.
"""
import sys

from dotenv import load_dotenv

from core.config import get_settings
from core.exceptions import ConfigurationError
from core.logger import setup_logger

logger = setup_logger(__name__)


def main():
    load_dotenv()

    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message} {e.details}")
        sys.exit(1)

    import uvicorn
    from app.api import app

    logger.info(
        f"{settings.app_name} on {settings.host}:{settings.port}, "
        f"database {settings.database_path}, exports in {settings.temp_storage_path}"
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
