import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Attach a console handler to the formadmin logger (idempotent)."""
    logger = logging.getLogger("formadmin")
    logger.setLevel(level.upper())

    # Avoid stacking handlers when both services are imported in one process
    if any(getattr(h, "_formadmin", False) for h in logger.handlers):
        return

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler._formadmin = True
    logger.addHandler(console_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
