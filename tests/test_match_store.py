import asyncio

import pytest

from match_store import STARTING_COINS, MatchStore, StorageError


def test_missing_file_starts_empty(tmp_path):
    store = MatchStore(tmp_path / "nothing-here.toml")
    asyncio.run(store.load())
    assert store.matches == {}
    assert store.balance("1") == STARTING_COINS


def test_broken_file_is_a_storage_error(tmp_path):
    location = tmp_path / "games.toml"
    location.write_text("[coins\n1 = ")
    with pytest.raises(StorageError):
        asyncio.run(MatchStore(location).load())


def test_coins_round_trip(tmp_path):
    location = tmp_path / "games.toml"

    async def runner():
        store = MatchStore(location)
        assert store.credit("2", 20) == STARTING_COINS + 20
        await store.save()
        reloaded = MatchStore(location)
        await reloaded.load()
        return reloaded

    reloaded = asyncio.run(runner())
    assert reloaded.balance("2") == STARTING_COINS + 20
    assert not (tmp_path / "games.toml.tmp").exists()


def test_latest_pending_invite_wins(tmp_path):
    store = MatchStore(tmp_path / "games.toml")
    older = store.new_invite("tictactoe", "1", "2")
    newer = store.new_invite("tictactoe", "3", "2")
    older.created_at, newer.created_at = 1.0, 2.0
    store.new_invite("gebeta", "1", "2")

    assert store.latest_pending_invite_for("2", "tictactoe") is newer
    newer.status = "declined"
    assert store.latest_pending_invite_for("2", "tictactoe") is older
    assert store.latest_pending_invite_for("1", "tictactoe") is None
