import asyncio
import shutil
from pathlib import Path

import pytest

from config import Config, ConfigurationLoadError
from session_directory import DirectoryTimings

EXAMPLES = Path(__file__).resolve().parent.parent / ".example"


@pytest.fixture
def config_files(tmp_path):
    config_location = tmp_path / "config.toml"
    secrets_location = tmp_path / "secrets.toml"
    shutil.copy(EXAMPLES / "config.toml", config_location)
    shutil.copy(EXAMPLES / "secrets.toml", secrets_location)
    return config_location, secrets_location


def test_example_configuration_loads(config_files):
    config = Config(*config_files)
    asyncio.run(config.initialize())

    assert config.config["server"]["websocket_port"] == 8765
    assert set(config.secrets["users"]) == {"1", "2"}
    timings = DirectoryTimings.from_config(config.config)
    assert timings == DirectoryTimings(presence_timeout=15.0, decline_grace=5.0, pending_ttl=45.0,
                                       notify_superseded=False)


def test_close_writes_files_back_unchanged(config_files):
    config_location, _ = config_files
    before = config_location.read_text()

    async def runner():
        config = Config(*config_files)
        await config.initialize()
        await config.close()

    asyncio.run(runner())
    assert config_location.read_text() == before


def test_missing_config(tmp_path, config_files):
    _, secrets_location = config_files
    with pytest.raises(ConfigurationLoadError):
        asyncio.run(Config(tmp_path / "missing.toml", secrets_location).initialize())


def test_invalid_toml(config_files):
    config_location, _ = config_files
    config_location.write_text("[server\nname = ")
    with pytest.raises(ConfigurationLoadError):
        asyncio.run(Config(*config_files).initialize())


@pytest.mark.parametrize("old, new", [
    ("websocket_port = 8765", "websocket_port = 70000"),
    ("timeout = 15", "timeout = 0"),
    ("notify_superseded = false", "notify_superseded = \"no\""),
    ('id = "3f1c2a9e-8d4b-4c7a-9e2f-5b6d7c8a9e01"', 'id = "not-a-uuid"'),
])
def test_out_of_range_values(config_files, old, new):
    config_location, _ = config_files
    config_location.write_text(config_location.read_text().replace(old, new))
    with pytest.raises(ConfigurationLoadError):
        asyncio.run(Config(*config_files).initialize())


def test_bad_token_hash_in_secrets(config_files):
    _, secrets_location = config_files
    secrets_location.write_text(secrets_location.read_text().replace("0" * 64, "z" * 64, 1))
    with pytest.raises(ConfigurationLoadError):
        asyncio.run(Config(*config_files).initialize())
