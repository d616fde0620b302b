import pytest

from fakes import FakeNetwork


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()
