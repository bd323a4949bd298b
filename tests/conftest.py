import pytest

from squat_analysis.config import Settings

from tests.helpers import make_timeline, squat_samples


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def samples():
    """Ten-frame squat with good form, bottom at frame 5."""
    return squat_samples()


@pytest.fixture
def timeline(samples):
    return make_timeline(samples)
