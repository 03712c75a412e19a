from pathlib import Path

from pytest import MonkeyPatch, raises

from anylist_client import ClientConfig, Session

ENV_VARS = [
    "ANYLIST_EMAIL",
    "ANYLIST_PASSWORD",
    "ANYLIST_CREDENTIALS_FILE",
]


def clear_env(monkeypatch: MonkeyPatch):
    # set before deleting so values loaded from .env are undone too
    for var in ENV_VARS:
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)


def test_defaults():
    config = ClientConfig(email="user@example.com", password="hunter2")

    assert config.base_url == "https://www.anylist.com"
    assert config.max_reconnect_attempts == 2
    assert config.credentials_file is not None
    assert config.credentials_file.name == ".anylist_credentials"


def test_yaml(tmp_path: Path):
    file = tmp_path / "config.yaml"
    config = ClientConfig(
        email="user@example.com",
        password="hunter2",
        credentials_file=tmp_path / "credentials",
        reconnect_delay=2.5,
    )

    config.dump_yaml(file)

    assert "reconnect_delay: 2.5" in file.read_text()
    assert ClientConfig.load_yaml(file) == config


def test_yaml_errors(tmp_path: Path):
    with raises(FileNotFoundError):
        ClientConfig.load_yaml(tmp_path / "missing.yaml")

    file = tmp_path / "config.yaml"
    file.write_text("- email\n- password\n")

    with raises(ValueError):
        ClientConfig.load_yaml(file)


def test_credentials_file_expanded():
    config = ClientConfig(
        email="user@example.com",
        password="hunter2",
        credentials_file="~/credentials",
    )

    assert config.credentials_file == Path.home() / "credentials"


def test_invalid():
    with raises(ValueError):
        ClientConfig(
            email="user@example.com",
            password="hunter2",
            max_reconnect_attempts=-1,
        )


def test_from_env(tmp_path: Path, monkeypatch: MonkeyPatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("ANYLIST_EMAIL", "user@example.com")
    monkeypatch.setenv("ANYLIST_PASSWORD", "hunter2")
    monkeypatch.setenv(
        "ANYLIST_CREDENTIALS_FILE", str(tmp_path / "credentials")
    )

    config = ClientConfig.from_env(tmp_path / ".env")

    assert config.email == "user@example.com"
    assert config.password == "hunter2"
    assert config.credentials_file == tmp_path / "credentials"

    # explicit values take precedence
    config = ClientConfig.from_env(
        tmp_path / ".env", email="other@example.com"
    )
    assert config.email == "other@example.com"


def test_from_env_file(tmp_path: Path, monkeypatch: MonkeyPatch):
    clear_env(monkeypatch)

    env_file = tmp_path / ".env"
    env_file.write_text(
        "ANYLIST_EMAIL=user@example.com\nANYLIST_PASSWORD=hunter2\n"
    )

    config = ClientConfig.from_env(env_file)

    assert config.email == "user@example.com"
    assert config.password == "hunter2"


def test_from_env_missing(tmp_path: Path, monkeypatch: MonkeyPatch):
    clear_env(monkeypatch)
    monkeypatch.setenv("ANYLIST_EMAIL", "user@example.com")

    with raises(ValueError, match="ANYLIST_PASSWORD"):
        ClientConfig.from_env(tmp_path / ".env")


async def test_create_session(tmp_path: Path):
    config = ClientConfig(
        email="user@example.com",
        password="hunter2",
        credentials_file=tmp_path / "credentials",
        keepalive_interval=10.0,
    )

    session = config.create_session()

    assert isinstance(session, Session)
    assert session.client_id is None
    assert not session.is_authenticated

    # not logged in, nothing to connect
    await session.teardown()
