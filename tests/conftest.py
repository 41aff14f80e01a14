import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_warnings_capture():
    # main() calls logging.captureWarnings(True), which only hooks
    # warnings.showwarning the first time per process; undo it after each
    # test so in-process CLI invocations stay isolated.
    yield
    logging.captureWarnings(False)
