"""ルール構築のユニットテスト"""

from ldflags.builder import build_endpoint_rule, resolve_variation_refs
from ldflags.models import Variation, VariationId, VariationIndex


def test_build_endpoint_rule_users_api() -> None:
    """ID 参照で 80/20 のロールアウトルールを構築する。"""
    rule = build_endpoint_rule(
        "Users API",
        "GET /api/v1/users",
        (80, 20),
        "key",
        "request",
        True,
        [VariationId("vid-1"), VariationId("vid-2")],
    )
    assert rule.description == "Users API"
    assert rule.track_events is True
    assert len(rule.clauses) == 1
    clause = rule.clauses[0]
    assert clause.attribute == "endpoint_pattern"
    assert clause.op == "matches"
    assert clause.values == ("GET /api/v1/users",)
    assert clause.negate is False
    assert clause.context_kind == "request"

    assert rule.rollout is not None
    assert rule.rollout.bucket_by == "key"
    assert rule.rollout.context_kind == "request"
    assert [(w.variation, w.weight) for w in rule.rollout.weights] == [
        (VariationId("vid-1"), 80000),
        (VariationId("vid-2"), 20000),
    ]


def test_build_endpoint_rule_weights_sum_to_100000() -> None:
    """重みの合計は常に 100000。"""
    for first in (0, 1, 33, 50, 99, 100):
        rule = build_endpoint_rule("r", "POST /x", (first, 100 - first))
        assert rule.rollout is not None
        assert sum(w.weight for w in rule.rollout.weights) == 100000


def test_build_endpoint_rule_falls_back_to_indices() -> None:
    """参照が 2 つ未満ならインデックス 0, 1 を使う。"""
    rule = build_endpoint_rule("r", "GET /", (100, 0), variation_refs=[VariationId("only")])
    assert rule.rollout is not None
    assert [w.variation for w in rule.rollout.weights] == [VariationIndex(0), VariationIndex(1)]


def test_build_endpoint_rule_defaults() -> None:
    """既定値: 100/0, bucketBy=key, contextKind=request, trackEvents=True。"""
    rule = build_endpoint_rule("r", "DELETE /items/1")
    assert rule.track_events is True
    assert rule.rollout is not None
    assert [w.weight for w in rule.rollout.weights] == [100000, 0]
    assert rule.rollout.bucket_by == "key"
    assert rule.clauses[0].context_kind == "request"


def test_build_endpoint_rule_is_deterministic() -> None:
    """同じ入力からは同じルールができる。"""
    args = ("r", "GET /a", (30, 70), "userId", "user", False, [VariationIndex(0), VariationIndex(1)])
    assert build_endpoint_rule(*args) == build_endpoint_rule(*args)


def test_resolve_variation_refs_uses_ids_in_order() -> None:
    """安定 ID を元の順序で返す。"""
    variations = [Variation(value=False, id="a"), Variation(value=True, id="b"), Variation(value=1, id="c")]
    assert resolve_variation_refs(variations) == [VariationId("a"), VariationId("b"), VariationId("c")]


def test_resolve_variation_refs_without_ids() -> None:
    """ID が 2 つ未満ならインデックス参照。"""
    variations = [Variation(value=False, id="a"), Variation(value=True)]
    assert resolve_variation_refs(variations) == [VariationIndex(0), VariationIndex(1)]
    assert resolve_variation_refs([]) == [VariationIndex(0), VariationIndex(1)]
