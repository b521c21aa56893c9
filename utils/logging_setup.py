import logging
import sys
from typing import Dict, Optional


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure console (and optional file) logging for the app.

    Args:
        level: Level name, e.g. "DEBUG" or "INFO"
        log_file: Optional path of an extra log file
    """
    log_level_map: Dict[str, int] = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    log_level = log_level_map.get(level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    for module in ["pipeline", "utils"]:
        logging.getLogger(module).setLevel(log_level)

    logging.getLogger(__name__).debug("Logging configured with level: %s", level)
