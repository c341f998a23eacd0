"""InMemoryFlagGateway 実装"""

from __future__ import annotations

import copy
from typing import Any

from .gateway import FlagGateway
from .models import EnvironmentInfo, FlagDocument, FlagStatus


class InMemoryFlagGateway(FlagGateway):
    """テスト・ドライラン用インメモリゲートウェイ。

    パッチは保持しているフラグドキュメントに実際に適用するので、
    読み戻して結果を確認できる。
    """

    def __init__(self) -> None:
        self._flags: dict[tuple[str, str], dict[str, Any]] = {}
        self._environments: dict[str, list[EnvironmentInfo]] = {}
        self._statuses: dict[tuple[str, str], FlagStatus] = {}
        self._rule_seq = 0
        self.accept_patches = True
        self.get_flag_calls = 0
        self.semantic_requests: list[dict[str, Any]] = []
        self.patch_requests: list[dict[str, Any]] = []

    def set_flag(self, project_key: str, flag: dict[str, Any]) -> None:
        """フラグドキュメントを設定する。"""
        self._flags[(project_key, flag["key"])] = copy.deepcopy(flag)

    def set_environments(self, project_key: str, environments: list[EnvironmentInfo]) -> None:
        """プロジェクトの環境一覧を設定する。"""
        self._environments[project_key] = list(environments)

    def set_flag_status(self, project_key: str, status: FlagStatus) -> None:
        """フラグのステータスを設定する。"""
        self._statuses[(project_key, status.key)] = status

    def raw_flag(self, project_key: str, flag_key: str) -> dict[str, Any] | None:
        """保持しているドキュメントのコピーを返す。"""
        flag = self._flags.get((project_key, flag_key))
        return copy.deepcopy(flag) if flag is not None else None

    def get_flag(self, project_key: str, flag_key: str) -> FlagDocument | None:
        self.get_flag_calls += 1
        flag = self._flags.get((project_key, flag_key))
        if flag is None:
            return None
        return FlagDocument.from_dict(copy.deepcopy(flag))

    def get_flags(self, project_key: str) -> list[FlagDocument]:
        return [
            FlagDocument.from_dict(copy.deepcopy(flag))
            for (project, _), flag in self._flags.items()
            if project == project_key
        ]

    def get_project_environments(self, project_key: str) -> list[EnvironmentInfo]:
        return list(self._environments.get(project_key, []))

    def get_flag_status(
        self,
        project_key: str,
        flag_key: str,
        environment_key: str | None = None,
    ) -> FlagStatus | None:
        status = self._statuses.get((project_key, flag_key))
        if status is None:
            return None
        if environment_key is None:
            return status
        if environment_key not in status.environments:
            return None
        return FlagStatus(
            key=status.key,
            environments={environment_key: status.environments[environment_key]},
        )

    def _next_rule_id(self) -> str:
        self._rule_seq += 1
        return f"rule-{self._rule_seq}"

    def _rule_from_instruction(
        self,
        instruction: dict[str, Any],
        variations: list[dict[str, Any]],
    ) -> dict[str, Any]:
        ids = [v.get("_id") for v in variations]

        def to_index(ref: str | int) -> int:
            if ref in ids:
                return ids.index(ref)
            return int(ref)

        rule: dict[str, Any] = {
            "_id": self._next_rule_id(),
            "description": instruction.get("description", ""),
            "clauses": copy.deepcopy(instruction.get("clauses", [])),
            "trackEvents": instruction.get("trackEvents", False),
        }
        if "variationId" in instruction:
            rule["variation"] = to_index(instruction["variationId"])
        elif "variation" in instruction:
            rule["variation"] = int(instruction["variation"])
        elif "rolloutWeights" in instruction:
            rule["rollout"] = {
                "variations": [
                    {"variation": to_index(ref), "weight": weight}
                    for ref, weight in instruction["rolloutWeights"].items()
                ],
                "bucketBy": instruction.get("rolloutBucketBy", "key"),
                "contextKind": instruction.get("rolloutContextKind", "request"),
            }
        return rule

    def apply_semantic_instruction(
        self,
        project_key: str,
        flag_key: str,
        environment_key: str,
        instruction: dict[str, Any],
        comment: str | None = None,
    ) -> bool:
        self.semantic_requests.append(
            {
                "project_key": project_key,
                "flag_key": flag_key,
                "environment_key": environment_key,
                "instruction": copy.deepcopy(instruction),
                "comment": comment,
            }
        )
        if not self.accept_patches or instruction.get("kind") != "addRule":
            return False
        flag = self._flags.get((project_key, flag_key))
        if flag is None:
            return False
        environment = (flag.get("environments") or {}).get(environment_key)
        if environment is None:
            return False

        rules: list[dict[str, Any]] = environment.setdefault("rules", [])
        new_rule = self._rule_from_instruction(instruction, flag.get("variations", []))
        index = len(rules)
        before = instruction.get("beforeRuleId")
        if before:
            for i, existing in enumerate(rules):
                if existing.get("_id") == before:
                    index = i
                    break
        rules.insert(index, new_rule)
        return True

    def apply_document_patch(
        self,
        project_key: str,
        flag_key: str,
        patch_ops: list[dict[str, Any]],
        comment: str | None = None,
    ) -> bool:
        self.patch_requests.append(
            {
                "project_key": project_key,
                "flag_key": flag_key,
                "patch": copy.deepcopy(patch_ops),
                "comment": comment,
            }
        )
        if not self.accept_patches:
            return False
        flag = self._flags.get((project_key, flag_key))
        if flag is None:
            return False

        updated = copy.deepcopy(flag)
        for op in patch_ops:
            if op.get("op") != "replace":
                return False
            parts = op["path"].lstrip("/").split("/")
            node: Any = updated
            for part in parts[:-1]:
                if not isinstance(node, dict) or part not in node:
                    return False
                node = node[part]
            value = copy.deepcopy(op["value"])
            if parts[-1] == "rules":
                for rule in value:
                    rule.setdefault("_id", self._next_rule_id())
            node[parts[-1]] = value
        self._flags[(project_key, flag_key)] = updated
        return True
