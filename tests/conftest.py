import pytest

from helpers import Recorder


@pytest.fixture(scope="function")
def recorder():
    return Recorder()
