"""エンドポイントマッチングルールの構築"""

from __future__ import annotations

from collections.abc import Sequence

from .models import (
    Clause,
    Rollout,
    RolloutWeight,
    Rule,
    Variation,
    VariationId,
    VariationIndex,
    VariationRef,
)

ENDPOINT_ATTRIBUTE = "endpoint_pattern"
MATCHES_OP = "matches"
WEIGHT_SCALE = 1000


def resolve_variation_refs(variations: Sequence[Variation]) -> list[VariationRef]:
    """フラグのバリエーションから参照一覧を作る。

    安定 ID を元の順序で集め、2 つ未満ならインデックス 0, 1 にフォールバックする。
    """
    refs: list[VariationRef] = [VariationId(v.id) for v in variations if v.id]
    if len(refs) < 2:
        return [VariationIndex(0), VariationIndex(1)]
    return refs


def build_endpoint_rule(
    name: str,
    endpoint_pattern: str,
    percentages: Sequence[int] = (100, 0),
    bucket_by: str = "key",
    context_kind: str = "request",
    track_events: bool = True,
    variation_refs: Sequence[VariationRef] = (),
) -> Rule:
    """エンドポイントパターンに対するパーセンテージロールアウトのルールを返す。

    percentages の合計が 100 であること、パターンが "METHOD /path" 形式で
    あることは呼び出し側で検証済みとする。
    """
    if len(variation_refs) >= 2:
        first, second = variation_refs[0], variation_refs[1]
    else:
        first, second = VariationIndex(0), VariationIndex(1)

    clause = Clause(
        attribute=ENDPOINT_ATTRIBUTE,
        op=MATCHES_OP,
        values=(endpoint_pattern,),
        negate=False,
        context_kind=context_kind,
    )
    rollout = Rollout(
        weights=(
            RolloutWeight(variation=first, weight=percentages[0] * WEIGHT_SCALE),
            RolloutWeight(variation=second, weight=percentages[1] * WEIGHT_SCALE),
        ),
        bucket_by=bucket_by,
        context_kind=context_kind,
    )
    return Rule(
        description=name,
        clauses=(clause,),
        track_events=track_events,
        rollout=rollout,
    )
