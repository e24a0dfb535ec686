import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from auth import UserRegistry, hash_token
from call_agent import MediaTransport
from game_coordinator import GameCoordinator
from match_store import MatchStore
from packet_router import PacketRouter
from presence import PresenceTracker
from session_directory import DirectoryTimings, SessionDirectory
from signaling_manager import SignalingManager

SALT = "ab" * 32
TOKENS = {"1": "mom-token", "2": "kid-token", "3": "grandpa-token"}
NAMES = {"1": "mom", "2": "kid", "3": "grandpa"}


class FakeClock:

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeTransport(MediaTransport):
    """records what the agent hands it; tests drive the connection state by hand"""

    def __init__(self, label: str = "peer"):
        self.label = label
        self.offer = None
        self.answer = None
        self.remote_offer = None
        self.remote_answer = None
        self.closed = False

    async def create_offer(self):
        self.offer = {"type": "offer", "sdp": f"offer from {self.label}"}
        return self.offer

    async def create_answer(self, offer):
        self.remote_offer = offer
        self.answer = {"type": "answer", "sdp": f"answer from {self.label}"}
        return self.answer

    async def accept_answer(self, answer):
        self.remote_answer = answer

    async def close(self):
        self.closed = True


def make_secrets() -> dict:
    return {
        "server": {"token_salt": SALT},
        "users": {
            user_id: {"name": NAMES[user_id], "token_hash": hash_token(SALT, token)}
            for user_id, token in TOKENS.items()
        },
    }


def build_stack(tmp_path: Path, clock=None, timings: DirectoryTimings = None) -> SimpleNamespace:
    """the same wiring FamilyGames does, minus the network"""
    directory = SessionDirectory(timings, clock=clock) if clock is not None else SessionDirectory(timings)
    users = UserRegistry(make_secrets())
    presence = PresenceTracker(directory, sweep_interval=30)
    signaling = SignalingManager(directory, presence, users, sweep_interval=10)
    store = MatchStore(tmp_path / "games.toml")
    games = GameCoordinator(store, users, directory, win_reward=20)
    router = PacketRouter(signaling, games, users)
    return SimpleNamespace(directory=directory, users=users, presence=presence, signaling=signaling,
                           store=store, games=games, router=router)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def directory(clock):
    return SessionDirectory(clock=clock)


@pytest.fixture
def stack(tmp_path, clock):
    return build_stack(tmp_path, clock=clock)
