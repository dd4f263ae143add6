"""Tests for configuration loading and default file initialisation."""

import pytest

from wacraft_reminders.config import init_config_files, load_config, load_reminders
from wacraft_reminders.wacraft.credentials import Credentials

CONFIG_YAML = """\
log_level: DEBUG
data_dir: ${STATE_DIR}
reminders_file: ${data_dir}/reminders.yaml
wacraft:
  base_url: https://api.example.com/
  email: ${WACRAFT_EMAIL}
  password: ${WACRAFT_PASSWORD}
  access_token: seeded
  token_expires_at: 1700000000
email:
  smtp_server: smtp.example.com
  smtp_user: bot
  smtp_password: ${UNSET_SMTP_PASSWORD}
  from_address: reminders@example.com
daemon:
  interval: 60
"""


class TestLoadConfig:
    def test_interpolates_env_and_data_dir(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STATE_DIR", "/var/lib/reminders")
        monkeypatch.setenv("WACRAFT_EMAIL", "ops@example.com")
        # unset, but registered with monkeypatch so the value dotenv loads is removed afterwards
        monkeypatch.setenv("WACRAFT_PASSWORD", "")
        monkeypatch.delenv("WACRAFT_PASSWORD")
        config_file = tmp_path / "config.yaml"
        config_file.write_text(CONFIG_YAML)
        env_file = tmp_path / ".env"
        env_file.write_text("WACRAFT_PASSWORD=from-dotenv\n")

        config = load_config(config_file, env_file)

        assert config.log_level == "DEBUG"
        assert config.reminders_file == "/var/lib/reminders/reminders.yaml"
        assert config.wacraft.email == "ops@example.com"
        assert config.wacraft.password == "from-dotenv"
        assert config.email.smtp_password == "${UNSET_SMTP_PASSWORD}"
        assert config.email.smtp_port == 587
        assert config.daemon.interval == 60
        assert config.daemon.batch_size == 100

    def test_credentials_seeded_from_config(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STATE_DIR", str(tmp_path))
        config_file = tmp_path / "config.yaml"
        config_file.write_text(CONFIG_YAML)

        creds = Credentials.from_config(load_config(config_file, tmp_path / "none.env").wacraft)

        assert creds.base_url == "https://api.example.com"
        assert creds.access_token == "seeded"
        assert creds.expires_at == 1700000000

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml", tmp_path / ".env")


class TestInitConfigFiles:
    def test_writes_loadable_defaults(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        reminders_path = tmp_path / "data" / "reminders.yaml"

        init_config_files(config_path, reminders_path)

        config = load_config(config_path, tmp_path / ".env")
        assert config.wacraft.base_url == "https://api.wacraft.com.br"
        assert config.daemon.interval == 3600
        assert load_reminders(reminders_path) == []

    def test_refuses_to_overwrite_without_force(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text("custom: true\n")

        with pytest.raises(FileExistsError):
            init_config_files(config_path, tmp_path / "reminders.yaml")
        assert config_path.read_text() == "custom: true\n"

        init_config_files(config_path, tmp_path / "reminders.yaml", force=True)
        assert "wacraft:" in config_path.read_text()
