import pytest

from jddf_random import RandomSource


@pytest.fixture
def rng():
    return RandomSource(seed=1234)
