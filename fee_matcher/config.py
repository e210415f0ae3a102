import logging
import os

from dotenv import load_dotenv

load_dotenv()  # Picks up a local .env next to the working directory

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
IMPORT_CHUNK_SIZE = int(os.environ.get("IMPORT_CHUNK_SIZE", "80"))
STRICT_IMPORT = os.environ.get("STRICT_IMPORT", "true").lower() in ("1", "true", "yes")
SUGGESTION_LIMIT = int(os.environ.get("SUGGESTION_LIMIT", "20"))
APP_PORT = int(os.environ.get("APP_PORT", "8000"))
APP_DEBUG = os.environ.get("APP_DEBUG", "false").lower() in ("1", "true", "yes")


def configure_logging(level=None):
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
