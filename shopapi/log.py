# shopapi/log.py
import logging

from rich.logging import RichHandler


def configure_logging(level: str = "INFO") -> None:
    """Attach a single rich handler to the root logger, next to any the host installed."""
    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return
    handler = RichHandler(rich_tracebacks=True, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s", datefmt="[%X]"))
    root.addHandler(handler)
