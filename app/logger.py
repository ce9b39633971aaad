import logging


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] [%(name)s:%(lineno)d] - %(message)s",
    )
    # pymongo heartbeats flood DEBUG
    logging.getLogger("pymongo").setLevel(max(numeric_level, logging.WARNING))
    logging.getLogger(__name__).info("Logging initialized at %s level", level.upper())
