import asyncio
import sys

from auth import hash_token
from conftest import SALT
from family_games import cli, main


def test_hash_token_command(monkeypatch, capsys):
    monkeypatch.setattr(sys, "argv", ["family-games", "hash-token", SALT, "kid-token"])
    cli()
    assert capsys.readouterr().out.strip() == hash_token(SALT, "kid-token")


def test_main_gives_up_without_configuration(monkeypatch, tmp_path):
    monkeypatch.setenv("FAMILY_GAMES_CONFIG", str(tmp_path / "config.toml"))
    monkeypatch.setenv("FAMILY_GAMES_SECRETS", str(tmp_path / "secrets.toml"))
    assert asyncio.run(main()) is None
    assert not (tmp_path / "config.toml").exists()
