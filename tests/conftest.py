import pytest

from sites import SiteRegistry
from tests.pages import TEST_PROFILE


@pytest.fixture(autouse=True)
def test_site():
    """Register the offline test profile for the duration of a test."""
    SiteRegistry.register(TEST_PROFILE)
    yield TEST_PROFILE
    SiteRegistry._by_name.pop(TEST_PROFILE.name, None)
