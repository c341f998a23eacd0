"""ルール追加のパッチ戦略

SemanticPatchStrategy: addRule 命令を 1 つ送る。
DocumentPatchStrategy: 環境のルール一覧全体を JSON Patch の replace で送る。
どちらも同じ Rule を入力とし、読み戻した結果は同等になる。
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import structlog

from .exceptions import NotFoundError
from .gateway import FlagGateway, rules_path
from .models import EnvironmentConfig, FlagDocument, Rule, VariationId

logger = structlog.get_logger(__name__)


def build_add_rule_instruction(
    rule: Rule,
    existing_rules: list[Rule],
    position: int = 0,
) -> dict[str, Any]:
    """Rule を addRule 命令に変換する。

    position が既存ルールを指し、そのルールに ID があれば beforeRuleId で
    直前に挿入する。ID が無い場合はアンカー無し (サービス側で末尾に追加)。
    """
    instruction: dict[str, Any] = {
        "kind": "addRule",
        "clauses": [c.to_dict() for c in rule.clauses],
        "description": rule.description,
        "trackEvents": rule.track_events,
    }

    if rule.variation is not None:
        if isinstance(rule.variation, VariationId):
            instruction["variationId"] = rule.variation.id
        else:
            instruction["variation"] = rule.variation.index
    elif rule.rollout is not None:
        instruction["rolloutContextKind"] = rule.rollout.context_kind or "request"
        instruction["rolloutBucketBy"] = rule.rollout.bucket_by or "key"
        instruction["rolloutWeights"] = {
            w.variation.key: w.weight for w in rule.rollout.weights
        }

    if position > 0 and existing_rules:
        actual_position = min(position, len(existing_rules))
        if actual_position < len(existing_rules):
            anchor_id = existing_rules[actual_position].id
            if anchor_id:
                instruction["beforeRuleId"] = anchor_id

    return instruction


def insert_rule(
    rules: list[dict[str, Any]],
    rule_document: dict[str, Any],
    position: int,
) -> list[dict[str, Any]]:
    """rules の position に rule_document を挿入した新しいリストを返す。"""
    result = list(rules)
    index = min(max(position, 0), len(result))
    result.insert(index, rule_document)
    return result


def build_rules_replace_patch(
    environment_key: str,
    rules: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """環境のルール一覧を置き換える JSON Patch を返す。"""
    return [
        {
            "op": "replace",
            "path": rules_path(environment_key),
            "value": rules,
        }
    ]


class PatchStrategy(ABC):
    """ルール追加戦略の抽象基底クラス。"""

    def __init__(self, gateway: FlagGateway) -> None:
        self._gateway = gateway

    def _fetch_flag(self, project_key: str, flag_key: str) -> FlagDocument:
        flag = self._gateway.get_flag(project_key, flag_key)
        if flag is None:
            raise NotFoundError(
                "flag",
                flag_key,
                f"Could not fetch flag configuration for {flag_key}",
            )
        return flag

    @abstractmethod
    def apply(
        self,
        project_key: str,
        flag_key: str,
        environment_key: str,
        rule: Rule,
        position: int = 0,
        comment: str | None = None,
    ) -> bool:
        """ルールをフラグの環境に追加する。成功したら True。"""
        ...


class SemanticPatchStrategy(PatchStrategy):
    """セマンティックパッチ (addRule 命令) でルールを追加する。"""

    def apply(
        self,
        project_key: str,
        flag_key: str,
        environment_key: str,
        rule: Rule,
        position: int = 0,
        comment: str | None = None,
    ) -> bool:
        flag = self._fetch_flag(project_key, flag_key)
        environment = flag.environment(environment_key)
        if environment is None:
            available = flag.environment_keys()
            raise NotFoundError(
                "environment",
                environment_key,
                f"Environment {environment_key} not found for flag {flag_key}. "
                f"Available environments: {', '.join(available)}",
                available=available,
            )

        instruction = build_add_rule_instruction(rule, environment.rules, position)
        logger.debug("semantic patch instruction", flag=flag_key, instruction=instruction)
        return self._gateway.apply_semantic_instruction(
            project_key,
            flag_key,
            environment_key,
            instruction,
            comment,
        )


class DocumentPatchStrategy(PatchStrategy):
    """JSON Patch でルール一覧全体を置き換えて追加する。"""

    def apply(
        self,
        project_key: str,
        flag_key: str,
        environment_key: str,
        rule: Rule,
        position: int = 0,
        comment: str | None = None,
    ) -> bool:
        flag = self._fetch_flag(project_key, flag_key)
        environment = flag.environment(environment_key) or EnvironmentConfig(key=environment_key)

        existing = [r.to_document(flag.variations) for r in environment.rules]
        rules = insert_rule(existing, rule.to_document(flag.variations), position)
        patch = build_rules_replace_patch(environment_key, rules)
        logger.debug("json patch payload", flag=flag_key, patch=patch)
        return self._gateway.apply_document_patch(project_key, flag_key, patch, comment)
