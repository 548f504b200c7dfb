import pytest
from PIL import Image


class SleepRecorder:
    """Stands in for time.sleep and records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def image():
    return Image.new("RGB", (60, 30), "white")


@pytest.fixture
def sleeper():
    return SleepRecorder()
