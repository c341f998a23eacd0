"""FlagGateway 抽象基底クラス"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .models import EnvironmentInfo, FlagDocument, FlagStatus

SEMANTIC_PATCH_CONTENT_TYPE = "application/json; domain-model=launchdarkly.semanticpatch"


def rules_path(environment_key: str) -> str:
    """環境のルール一覧を指す JSON Pointer を返す。"""
    return f"/environments/{environment_key}/rules"


class FlagGateway(ABC):
    """フィーチャーフラグ管理 API のゲートウェイ。"""

    @abstractmethod
    def get_flag(self, project_key: str, flag_key: str) -> FlagDocument | None:
        """フラグを取得する。存在しなければ None。"""
        ...

    def get_flag_details(self, project_key: str, flag_key: str) -> dict[str, Any] | None:
        """正規化済みのフラグ詳細を返す。存在しなければ None。"""
        flag = self.get_flag(project_key, flag_key)
        if flag is None:
            return None
        return flag.to_details()

    @abstractmethod
    def get_flags(self, project_key: str) -> list[FlagDocument]:
        """プロジェクトのフラグ一覧を取得する。"""
        ...

    @abstractmethod
    def get_project_environments(self, project_key: str) -> list[EnvironmentInfo]:
        """プロジェクトの環境一覧を取得する。"""
        ...

    @abstractmethod
    def get_flag_status(
        self,
        project_key: str,
        flag_key: str,
        environment_key: str | None = None,
    ) -> FlagStatus | None:
        """フラグのステータスを取得する。存在しなければ None。"""
        ...

    @abstractmethod
    def apply_semantic_instruction(
        self,
        project_key: str,
        flag_key: str,
        environment_key: str,
        instruction: dict[str, Any],
        comment: str | None = None,
    ) -> bool:
        """セマンティックパッチの命令を 1 つ適用する。"""
        ...

    @abstractmethod
    def apply_document_patch(
        self,
        project_key: str,
        flag_key: str,
        patch_ops: list[dict[str, Any]],
        comment: str | None = None,
    ) -> bool:
        """JSON Patch 操作を適用する。"""
        ...
