import logging
import sys

from config import LOG_LEVEL

logger = logging.getLogger("freelance-api")


def setup_logging():
    """
    Configures the root logger for the application.
    Call once at startup from main.py.
    """
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        stream=sys.stdout,
    )
    # Silence noisy libraries
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)
