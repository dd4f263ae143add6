"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Iterable, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from wacraft_reminders.reminders.models import InactivityRule, rule_list


class WacraftConfig(BaseModel):
    base_url: str = "https://api.wacraft.com.br"
    email: str
    password: str
    # Seed tokens; refreshed in memory and never written back.
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_expires_at: Optional[int] = None  # Unix epoch seconds
    timeout: int = 30


class EmailConfig(BaseModel):
    smtp_server: str
    smtp_port: int = 587
    smtp_user: str
    smtp_password: str
    from_address: str
    use_tls: bool = False  # implicit TLS (port 465); STARTTLS is negotiated otherwise


class DaemonConfig(BaseModel):
    interval: int = Field(default=3600, gt=0)  # seconds between cycles
    batch_size: int = Field(default=100, gt=0)
    log_file: str = "./data/wacraft-reminders.log"
    pid_file: str = "./data/wacraft-reminders.pid"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    data_dir: str = "./data"
    reminders_file: str = "./reminders.yaml"
    wacraft: WacraftConfig
    email: EmailConfig
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # First pass: extract data_dir for self-referencing
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = raw_data.get("data_dir", "./data")
    data_dir = _interpolate_env_vars(data_dir)

    # Second pass: interpolate all env vars
    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated)

    return AppConfig(**data)


def load_reminders(path: str | Path) -> list[InactivityRule]:
    """Load reminder rules, interpolating ${VAR}. A missing file means no rules."""
    reminders_file = Path(path)
    if not reminders_file.exists():
        return []
    data = yaml.safe_load(_interpolate_env_vars(reminders_file.read_text(encoding="utf-8")))
    return rule_list.validate_python(data or [])


def save_reminders(path: str | Path, rules: Iterable[InactivityRule]) -> None:
    reminders_file = Path(path)
    reminders_file.parent.mkdir(parents=True, exist_ok=True)
    data = rule_list.dump_python(list(rules), mode="json", by_alias=True, exclude_none=True)
    reminders_file.write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8"
    )


DEFAULT_CONFIG = """\
log_level: INFO
data_dir: ./data
reminders_file: ${data_dir}/reminders.yaml

wacraft:
  base_url: https://api.wacraft.com.br
  email: ${WACRAFT_EMAIL}
  password: ${WACRAFT_PASSWORD}

email:
  smtp_server: smtp.example.com
  smtp_port: 587
  smtp_user: ${SMTP_USER}
  smtp_password: ${SMTP_PASSWORD}
  from_address: reminders@example.com

daemon:
  interval: 3600
  batch_size: 100
  log_file: ${data_dir}/wacraft-reminders.log
  pid_file: ${data_dir}/wacraft-reminders.pid
"""


def init_config_files(
    config_path: str | Path, reminders_path: str | Path, force: bool = False
) -> None:
    """Write a default config and an empty reminders file."""
    config_file = Path(config_path)
    reminders_file = Path(reminders_path)
    if not force and (config_file.exists() or reminders_file.exists()):
        raise FileExistsError("Configuration files already exist. Use --force to overwrite.")

    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(DEFAULT_CONFIG, encoding="utf-8")
    save_reminders(reminders_file, [])
