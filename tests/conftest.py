import logging

import pytest

from interviewer_bot.core.logging import set_masking, set_request_id


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo handlers installed by init_logging so later tests do not write to closed streams."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    set_masking(False)
    set_request_id(None)
