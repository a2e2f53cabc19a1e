import pytest
from fastapi.testclient import TestClient

from puzzle_leaderboard.app import create_app
from puzzle_leaderboard.config import Config
from puzzle_leaderboard.scoring import Leaderboard
from puzzle_leaderboard.store import MemoryStore


class FakeClock:
    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def leaderboard(store, clock):
    return Leaderboard(store, store, clock=clock)


@pytest.fixture
def unconfigured():
    return Config(store_url=None, store_token=None)


@pytest.fixture
def client(leaderboard, unconfigured):
    return TestClient(create_app(leaderboard=leaderboard, config=unconfigured))
