"""Configuration loader tests."""
from __future__ import annotations

from pathlib import Path

import pytest

from origami.config import AppConfig, ConfigError, load_config


def test_load_config_defaults_when_file_missing(tmp_path: Path) -> None:
    """Defaults apply when no config file is present."""
    config = load_config(config_file=tmp_path / "absent.yml", env={})

    assert isinstance(config, AppConfig)
    assert config.state_dir == Path("~/.origami").expanduser()
    assert config.registry_dir == config.state_dir / "registry"
    assert config.logs_dir == config.state_dir / "logs"
    assert config.templates_dir is None
    assert config.installation_dir == "var/docker"
    assert config.php_image == "default"
    assert config.binaries.compose == "auto"
    assert config.database.type == "mariadb"
    assert config.database.password == "YourPwdShouldBeLongAndSecure"
    assert config.database.name == "origami"
    assert config.backups.filename == "origami_backup.sql"
    assert config.backups.index == config.state_dir / "backups.json"


def test_load_config_reads_yaml_file(tmp_path: Path) -> None:
    """Values are loaded from the YAML config file."""
    cfg = tmp_path / "config.yml"
    cfg.write_text(
        f"state_dir: {tmp_path / 'state'}\n"
        "installation_dir: /docker/\n"
        "binaries:\n"
        "  compose: docker-compose\n"
        "database:\n"
        "  type: postgres\n"
        "  ready_attempts: 5\n",
        encoding="utf-8",
    )

    config = load_config(config_file=cfg, env={})

    assert config.config_file == cfg
    assert config.state_dir == tmp_path / "state"
    assert config.registry_dir == tmp_path / "state" / "registry"
    assert config.installation_dir == "docker"
    assert config.binaries.compose == "docker-compose"
    assert config.database.type == "postgres"
    assert config.database.ready_attempts == 5
    assert config.database.username == "origami"


def test_env_overrides_take_precedence(tmp_path: Path) -> None:
    """Environment variables override defaults and file settings."""
    cfg = tmp_path / "config.yml"
    cfg.write_text("database:\n  type: mysql\n", encoding="utf-8")
    env = {
        "ORIGAMI_DATABASE__TYPE": "postgres",
        "ORIGAMI_DATABASE__READY_DELAY": "0.5",
        "ORIGAMI_STATE_DIR": str(tmp_path / "state"),
        "ORIGAMI_BINARIES__COMPOSE": "docker compose",
        "ORIGAMI_PHP_IMAGE": "8.3",
        "UNRELATED": "ignored",
    }

    config = load_config(config_file=cfg, env=env)

    assert config.database.type == "postgres"
    assert config.database.ready_delay == 0.5
    assert config.state_dir == tmp_path / "state"
    assert config.binaries.compose == "docker compose"
    assert config.php_image == "8.3"


def test_config_file_env_var_selects_file(tmp_path: Path) -> None:
    cfg = tmp_path / "alt.yml"
    cfg.write_text("php_image: '8.2'\n", encoding="utf-8")

    config = load_config(env={"ORIGAMI_CONFIG_FILE": str(cfg)})

    assert config.config_file == cfg
    assert config.php_image == "8.2"


def test_overrides_apply_last(tmp_path: Path) -> None:
    config = load_config(
        config_file=tmp_path / "absent.yml",
        env={"ORIGAMI_DATABASE__NAME": "from_env"},
        overrides={"database": {"name": "from_override"}},
    )

    assert config.database.name == "from_override"


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("unknown: 1\n", "Unknown configuration keys"),
        ("binaries:\n  compose: podman\n", "Unsupported compose binary"),
        ("binaries:\n  podman: podman\n", "Unknown binaries configuration keys"),
        ("database:\n  type: sqlite\n", "Unsupported database type"),
        ("database:\n  ready_attempts: 0\n", "ready_attempts"),
        ("database:\n  ready_delay: -1\n", "must not be negative"),
        ("installation_dir: ../outside\n", "installation_dir"),
        ("backups:\n  filename: dumps/backup.sql\n", "backups.filename"),
        ("- a\n- b\n", "mapping"),
    ],
)
def test_invalid_configuration_is_rejected(tmp_path: Path, content: str, message: str) -> None:
    cfg = tmp_path / "config.yml"
    cfg.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigError, match=message):
        load_config(config_file=cfg, env={})


def test_to_dict_is_serialisable(tmp_path: Path) -> None:
    config = load_config(
        config_file=tmp_path / "absent.yml",
        env={},
        overrides={"state_dir": str(tmp_path)},
    )

    data = config.to_dict()

    assert data["registry_dir"] == str(tmp_path / "registry")
    assert data["binaries"] == {"docker": "docker", "compose": "auto", "mkcert": "mkcert"}
    assert data["backups"] == {
        "filename": "origami_backup.sql",
        "index": str(tmp_path / "backups.json"),
    }
    assert data["database"]["type"] == "mariadb"  # type: ignore[index]
