import logging

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_env_file() -> bool:
    """Load variables from a local .env file into os.environ.

    WHAT:
        Wraps python-dotenv with `override=False` so exported variables always win.
    WHY:
        Alembic and the arq worker read settings outside FastAPI; developers keep
        secrets in backend/.env rather than exporting them by hand.

    Returns:
        True when a .env file was found and read.
    """
    loaded = load_dotenv(override=False)
    if loaded:
        logger.info("Loaded local .env file (existing variables were NOT overwritten)")
    else:
        logger.debug("No local .env file found or loaded")
    return loaded
