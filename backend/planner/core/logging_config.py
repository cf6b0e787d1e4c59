import logging

LOG_FORMAT = "[%(levelname)s] %(asctime)s %(name)s - %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    """Install the root handler once for the API process or the worker."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx logs every request line at INFO, including query strings with tokens
    logging.getLogger("httpx").setLevel(logging.WARNING)
