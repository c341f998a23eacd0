"""設定型定義（pydantic BaseModel）"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

DEFAULT_API_URL = "https://app.launchdarkly.com/api/v2"
DEFAULT_FLAG_KEY = "api-v6-rollout-endpoints"


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "WARNING"
    format: Literal["json", "text"] = "text"


class Settings(BaseModel):
    """CLI 設定全体。"""

    api_key: str = ""
    api_url: str = DEFAULT_API_URL
    default_project: str = ""
    default_environment: str = ""
    default_flag: str = DEFAULT_FLAG_KEY
    timeout_seconds: float = Field(default=10.0, gt=0)
    log: LogSection = Field(default_factory=LogSection)
