from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from dotenv import load_dotenv

from flowcode.errors import StorageError
from flowcode.utils.io import read_text, write_json

DEFAULT_PLAN_FOLDER = "plan"
DEFAULT_CONFIG: Dict[str, str] = {
    "geminiApiKey": "",
    "planFolderName": DEFAULT_PLAN_FOLDER,
}


def default_home() -> Path:
    configured = os.getenv("FLOWCODE_HOME")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".flowcode"


@dataclass
class FlowcodeConfig:
    api_key: str = ""
    plan_folder_name: str = DEFAULT_PLAN_FOLDER
    extra: Dict = field(default_factory=dict)
    env_api_key: str = ""

    @property
    def credential(self) -> str:
        return self.api_key or self.env_api_key

    @property
    def plan_folder(self) -> str:
        return self.plan_folder_name.strip() or DEFAULT_PLAN_FOLDER

    def to_dict(self) -> Dict:
        payload = dict(self.extra)
        payload["geminiApiKey"] = self.api_key
        payload["planFolderName"] = self.plan_folder_name
        return payload

    @classmethod
    def from_dict(cls, payload: Dict) -> "FlowcodeConfig":
        extra = {
            key: value
            for key, value in payload.items()
            if key not in ("geminiApiKey", "planFolderName")
        }
        return cls(
            api_key=payload.get("geminiApiKey") or "",
            plan_folder_name=payload.get("planFolderName") or DEFAULT_PLAN_FOLDER,
            extra=extra,
        )


class ConfigStore:
    def __init__(self, home: Path | None = None) -> None:
        self.home = home or default_home()
        self.config_path = self.home / "config.json"
        self.sessions_dir = self.home / "sessions"

    def ensure(self) -> None:
        self.home.mkdir(parents=True, exist_ok=True)
        self.sessions_dir.mkdir(parents=True, exist_ok=True)
        if not self.config_path.exists():
            write_json(self.config_path, DEFAULT_CONFIG)

    def load(self) -> FlowcodeConfig:
        self.ensure()
        try:
            payload = json.loads(read_text(self.config_path))
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(
                f"Unable to read config {self.config_path}: {exc}", self.config_path
            ) from exc
        if not isinstance(payload, dict):
            raise StorageError(
                f"Config {self.config_path} must contain a JSON object.", self.config_path
            )
        config = FlowcodeConfig.from_dict(payload)
        config.env_api_key = os.getenv("GEMINI_API_KEY", "")
        return config

    def save(self, config: FlowcodeConfig) -> None:
        self.ensure()
        try:
            write_json(self.config_path, config.to_dict())
        except OSError as exc:
            raise StorageError(
                f"Unable to write config {self.config_path}: {exc}", self.config_path
            ) from exc


def load_environment(base_dir: Path) -> None:
    load_dotenv(base_dir / ".env")
