from concurrent.futures import ThreadPoolExecutor

import pytest
from dotenv import load_dotenv

from app.automation.config_loader import EngineConfig, load_engine_config
from app.automation.engine import build_engine

from factories import FakeAdvisor, FakeClock, FakeMarketProvider

TEST_CHAIN_ID = 1329


@pytest.fixture()
def config() -> EngineConfig:
    load_dotenv(dotenv_path=".env.example")
    return load_engine_config(TEST_CHAIN_ID)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture()
def provider() -> FakeMarketProvider:
    return FakeMarketProvider()


@pytest.fixture()
def advisor() -> FakeAdvisor:
    return FakeAdvisor()


@pytest.fixture()
def engine(config, provider, advisor, clock):
    return build_engine(config, provider=provider, advisor=advisor, notify=False, clock=clock)
