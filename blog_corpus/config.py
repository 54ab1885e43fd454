from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import ValidationError

from .config_schema import AppConfig
from .errors import ConfigError


@dataclass(frozen=True)
class RuntimeSecrets:
    github_token: str | None = None


def load_config(path: str | Path) -> AppConfig:
    """
    Load a YAML config file and validate it into a typed AppConfig.

    Relative content paths are resolved against the config file's directory.
    Raises ConfigError with a readable validation message on failure.
    """
    p = Path(path)

    if not p.exists():
        raise ConfigError(f"Config file not found: {p}")

    try:
        raw_text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to read config file: {p}") from e

    try:
        data = yaml.safe_load(raw_text)
    except Exception as e:  # PyYAML can raise multiple exception types
        raise ConfigError(f"Failed to parse YAML in {p}: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Top-level YAML in {p} must be a mapping/object")

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(_format_pydantic_errors(e, p)) from e

    return resolve_content_paths(config, base_dir=p.resolve().parent)


def resolve_content_paths(config: AppConfig, *, base_dir: str | Path) -> AppConfig:
    base = Path(base_dir)

    def _abs(value: str) -> str:
        candidate = Path(value).expanduser()
        if candidate.is_absolute():
            return str(candidate)
        return str((base / candidate).resolve())

    content = config.content.model_copy(
        update={
            "posts_dir": _abs(config.content.posts_dir),
            "public_dir": _abs(config.content.public_dir),
        }
    )
    return config.model_copy(update={"content": content})


def resolve_runtime_secrets(
    config: AppConfig, *, environ: Mapping[str, str] | None = None
) -> RuntimeSecrets:
    """
    Read optional credentials from the environment.

    The GitHub token is only used to raise the rate limit for snippet fetches,
    so a missing value is not an error.
    """
    env = os.environ if environ is None else environ

    token = (env.get(config.snippets.token_env) or "").strip()
    return RuntimeSecrets(github_token=token or None)


def config_sha256(config: AppConfig) -> str:
    """
    Compute a stable SHA-256 hash of the config values for run records.
    """
    payload = json.dumps(
        config.model_dump(mode="json"),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    ).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def format_validation_errors(err: ValidationError, header: str) -> str:
    lines: list[str] = [header]
    for item in err.errors():
        loc = ".".join(str(part) for part in item.get("loc", [])) or "<root>"
        msg = item.get("msg", "invalid value")
        lines.append(f"- {loc}: {msg}")
    return "\n".join(lines)


def _format_pydantic_errors(err: ValidationError, path: Path) -> str:
    return format_validation_errors(err, f"Invalid configuration in {path}:")
