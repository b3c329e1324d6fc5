import pytest

from fakes import FakeAudioDriver, FakeRedis, FakeRest
from fanstream_backend.services.local_cache import LocalCache


@pytest.fixture
def driver():
    return FakeAudioDriver()


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.fixture
def rest():
    return FakeRest()


@pytest.fixture
def local_cache(redis):
    return LocalCache(redis, prefix="test:", ttl=60)
