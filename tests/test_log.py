# tests/test_log.py
import logging

from rich.logging import RichHandler

from shopapi.log import configure_logging


def test_rich_handler_joins_existing_host_handlers():
    root = logging.getLogger()
    host = logging.StreamHandler()
    before = list(root.handlers)
    root.addHandler(host)
    try:
        configure_logging("DEBUG")
        configure_logging("WARNING")
        rich_handlers = [h for h in root.handlers if isinstance(h, RichHandler)]
        assert len(rich_handlers) == 1
        assert host in root.handlers
        assert root.level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(logging.WARNING)
