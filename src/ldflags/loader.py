"""設定の読み込み

優先順位: デフォルト値 < YAML 設定ファイル < 環境変数
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import Settings
from .exceptions import ConfigError, FlagsErrorCodes

ENV_VARS: dict[str, tuple[str, ...]] = {
    "LAUNCHDARKLY_API_KEY": ("api_key",),
    "LAUNCHDARKLY_API_URL": ("api_url",),
    "LAUNCHDARKLY_DEFAULT_PROJECT": ("default_project",),
    "LAUNCHDARKLY_DEFAULT_ENVIRONMENT": ("default_environment",),
    "LAUNCHDARKLY_DEFAULT_FLAG": ("default_flag",),
    "LAUNCHDARKLY_TIMEOUT": ("timeout_seconds",),
    "LDFLAGS_LOG_LEVEL": ("log", "level"),
    "LDFLAGS_LOG_FORMAT": ("log", "format"),
}


def default_config_path() -> Path:
    return Path.home() / ".config" / "ldflags" / "config.yaml"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """base と override をディープマージして新しい辞書を返す。

    override の値が優先される。リストは置換（マージしない）。
    """
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    """YAML ファイルを読み込む。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(
            code=FlagsErrorCodes.READ_FILE,
            message=f"Failed to read config file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(
            code=FlagsErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise ConfigError(
            code=FlagsErrorCodes.PARSE_YAML,
            message=f"Config file must contain a mapping: {path}",
        )
    return data


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """環境変数から設定の上書き辞書を作る。空文字は無視する。"""
    result: dict[str, Any] = {}
    for name, key_path in ENV_VARS.items():
        value = environ.get(name)
        if not value:
            continue
        node = result
        for part in key_path[:-1]:
            node = node.setdefault(part, {})
        node[key_path[-1]] = value
    return result


def load(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """設定を読み込んで Settings を返す。

    config_path: 明示した場合は存在必須。未指定なら既定パスがあれば読む。
    environ: 環境変数（省略時は os.environ）。
    """
    data: dict[str, Any] = {}
    if config_path is not None:
        data = _read_yaml(config_path)
    else:
        path = default_config_path()
        if path.exists():
            data = _read_yaml(path)
    data = deep_merge(data, env_overrides(os.environ if environ is None else environ))
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            code=FlagsErrorCodes.CONFIG_VALIDATION,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e
