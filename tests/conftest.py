import pytest

from rdma_shuffle.config import ConfStore
from rdma_shuffle.config.version_support import reset_version_support


@pytest.fixture
def store():
    return ConfStore()


@pytest.fixture(autouse=True)
def clean_version_support():
    reset_version_support()
    yield
    reset_version_support()


class RecordingLog:
    """Stand-in for RdmaShuffleLogger that keeps lines per level."""

    def __init__(self):
        self.lines = {"debug": [], "info": [], "warning": [], "error": [], "output": []}

    def debug(self, msg):
        self.lines["debug"].append(msg)

    def info(self, msg):
        self.lines["info"].append(msg)

    def warning(self, msg):
        self.lines["warning"].append(msg)

    def error(self, msg):
        self.lines["error"].append(msg)

    def output(self, msg):
        self.lines["output"].append(msg)


@pytest.fixture
def recording_log():
    return RecordingLog()
