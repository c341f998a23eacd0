"""ルール追加フローのオーケストレーション"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

import structlog

from .builder import build_endpoint_rule, resolve_variation_refs
from .exceptions import NotFoundError
from .gateway import FlagGateway
from .models import EnvironmentConfig, FlagDocument, Rule, VariationIndex, VariationRef
from .strategies import DocumentPatchStrategy, PatchStrategy, SemanticPatchStrategy
from .validation import (
    validate_endpoint_pattern,
    validate_environment_key,
    validate_percentages,
    validate_position,
    validate_project_key,
    validate_variations,
)

logger = structlog.get_logger(__name__)

CONFIRM_PROMPT = "Do you want to continue?"

ConfirmFn = Callable[[str, bool], bool]


def always_confirm(prompt: str, default: bool) -> bool:
    return True


def never_confirm(prompt: str, default: bool) -> bool:
    return False


class AddRuleOutcome(StrEnum):
    """ルール追加の結果。"""

    APPLIED = "applied"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class AddRuleRequest:
    """ルール追加リクエスト。"""

    name: str
    pattern: str
    project_key: str
    environment_key: str
    flag_key: str
    percentages: tuple[int, int] = (100, 0)
    context_kind: str = "request"
    bucket_by: str = "key"
    position: int = 0
    comment: str | None = None
    track_events: bool = True
    use_json_patch: bool = False
    force: bool = False

    def validate(self) -> None:
        """API 呼び出し前の入力検証。"""
        validate_project_key(self.project_key)
        validate_environment_key(self.environment_key)
        validate_percentages(*self.percentages)
        validate_endpoint_pattern(self.pattern)
        validate_position(self.position)


@dataclass
class AddRulePlan:
    """フラグ取得後に確定した追加内容。"""

    flag: FlagDocument
    environment: EnvironmentConfig
    variation_refs: list[VariationRef]
    rule: Rule
    warnings: list[str] = field(default_factory=list)


@dataclass
class AddRuleResult:
    outcome: AddRuleOutcome
    plan: AddRulePlan | None = None


class AddRuleService:
    """検証 → 確認 → フラグ取得 → ルール構築 → パッチ適用 を行う。"""

    def __init__(self, gateway: FlagGateway, confirm: ConfirmFn) -> None:
        self._gateway = gateway
        self._confirm = confirm

    def strategy_for(self, request: AddRuleRequest) -> PatchStrategy:
        if request.use_json_patch:
            return DocumentPatchStrategy(self._gateway)
        return SemanticPatchStrategy(self._gateway)

    def prepare(self, request: AddRuleRequest) -> AddRulePlan:
        """フラグを取得して環境・バリエーションを検証し、ルールを構築する。"""
        flag = self._gateway.get_flag(request.project_key, request.flag_key)
        if flag is None:
            raise NotFoundError(
                "flag",
                request.flag_key,
                f"Flag '{request.flag_key}' not found in project '{request.project_key}'.",
            )

        environment = flag.environment(request.environment_key)
        if environment is None:
            raise NotFoundError(
                "environment",
                request.environment_key,
                f"Environment '{request.environment_key}' not found for flag '{request.flag_key}'.",
                available=flag.environment_keys(),
            )

        validate_variations(request.flag_key, flag.variations)

        warnings: list[str] = []
        if request.position > len(environment.rules):
            warnings.append(
                f"Position {request.position} is greater than the number of existing rules. "
                "The rule will be added at the end."
            )
        refs = resolve_variation_refs(flag.variations)
        if all(isinstance(ref, VariationIndex) for ref in refs):
            warnings.append("Could not find variation IDs in flag data. Using indices instead.")

        rule = build_endpoint_rule(
            request.name,
            request.pattern,
            request.percentages,
            request.bucket_by,
            request.context_kind,
            request.track_events,
            refs,
        )
        return AddRulePlan(
            flag=flag,
            environment=environment,
            variation_refs=refs,
            rule=rule,
            warnings=warnings,
        )

    def run(self, request: AddRuleRequest) -> AddRuleResult:
        request.validate()

        if not request.force and not self._confirm(CONFIRM_PROMPT, True):
            logger.info("add rule cancelled", flag=request.flag_key)
            return AddRuleResult(outcome=AddRuleOutcome.CANCELLED)

        plan = self.prepare(request)
        strategy = self.strategy_for(request)
        applied = strategy.apply(
            request.project_key,
            request.flag_key,
            request.environment_key,
            plan.rule,
            request.position,
            request.comment,
        )
        logger.info(
            "add rule finished",
            flag=request.flag_key,
            environment=request.environment_key,
            strategy=type(strategy).__name__,
            applied=applied,
        )
        outcome = AddRuleOutcome.APPLIED if applied else AddRuleOutcome.FAILED
        return AddRuleResult(outcome=outcome, plan=plan)
