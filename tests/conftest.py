import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_inkwell_logger():
    # The CLI attaches its own handler and stops propagation; undo that so
    # caplog keeps seeing records in later tests.
    yield
    logger = logging.getLogger("inkwell")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
