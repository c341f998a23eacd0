"""表示整形のユニットテスト"""

from ldflags.models import (
    Clause,
    EnvironmentInfo,
    EnvironmentStatus,
    FlagDocument,
    FlagStatus,
    Rollout,
    RolloutWeight,
    Rule,
    Variation,
    VariationId,
    VariationIndex,
)
from ldflags.presenter import (
    describe_clause,
    describe_fallthrough,
    describe_rule_outcome,
    environment_flag_row,
    environment_row,
    environments_table,
    flag_detail_lines,
    format_last_requested,
    humanize_header,
    operator_description,
    render_table,
    sort_environments,
    status_rows,
)

VARIATIONS = [Variation(value=False, id="vid-1", name="v5"), Variation(value=True, id="vid-2", name="v6")]


def make_flag() -> FlagDocument:
    return FlagDocument.from_dict(
        {
            "key": "api-v6",
            "name": "API v6",
            "description": "Rollout of API v6",
            "creationDate": 0,
            "tags": ["api", "rollout"],
            "variations": [v.to_dict() for v in VARIATIONS],
            "_maintainer": {"firstName": "Ada", "lastName": "L", "email": "ada@example.com", "role": "admin"},
            "environments": {
                "production": {
                    "on": True,
                    "version": 7,
                    "fallthrough": {"variation": 0},
                    "rules": [
                        {
                            "_id": "r1",
                            "description": "Users API",
                            "clauses": [
                                {
                                    "attribute": "endpoint_pattern",
                                    "op": "matches",
                                    "values": ["GET /api/v1/users"],
                                    "contextKind": "request",
                                }
                            ],
                            "rollout": {
                                "variations": [{"variation": 0, "weight": 80000}, {"variation": 1, "weight": 20000}]
                            },
                            "trackEvents": True,
                        }
                    ],
                    "targets": [{"variation": 1, "values": ["user-1", "user-2"]}],
                }
            },
        }
    )


def test_operator_description() -> None:
    """演算子の説明。未知の演算子はそのまま。"""
    assert operator_description("in") == "is one of"
    assert operator_description("matches") == "matches regex"
    assert operator_description("custom") == "custom"


def test_describe_clause() -> None:
    """条件の説明文。"""
    clause = Clause(attribute="email", op="endsWith", values=("@a.com", "@b.com"), negate=True, context_kind="user")
    assert describe_clause(clause) == "email (user) not ends with @a.com, @b.com"


def test_describe_rule_outcome() -> None:
    """固定バリエーションとロールアウトの説明。"""
    fixed = Rule(variation=VariationId("vid-2"))
    rollout = Rule(
        rollout=Rollout(
            weights=(RolloutWeight(VariationIndex(0), 75000), RolloutWeight(VariationIndex(1), 25000))
        )
    )
    assert describe_rule_outcome(fixed, VARIATIONS) == "v6"
    assert describe_rule_outcome(rollout, VARIATIONS) == "Percentage rollout: v5 (75%), v6 (25%)"
    assert describe_rule_outcome(Rule(), VARIATIONS) == "Unknown"


def test_describe_fallthrough() -> None:
    """デフォルトルールの説明。"""
    assert describe_fallthrough({"variation": 1}, VARIATIONS) == "v6"
    assert describe_fallthrough(None, VARIATIONS) == "N/A"
    assert describe_fallthrough({"variation": 5}, VARIATIONS) == "Variation 5"


def test_flag_detail_lines_with_environment() -> None:
    """環境を指定したフラグ詳細。"""
    text = "\n".join(flag_detail_lines(make_flag(), "production"))
    assert "==== Flag Details ====" in text
    assert "Key: api-v6" in text
    assert "Created: 1970-01-01 00:00:00" in text
    assert "Tags: api, rollout" in text
    assert "Name: Ada L" in text
    assert "==== Environment: production ====" in text
    assert "Status: ON" in text
    assert "Default rule: v5" in text
    assert "Rule 1 (Users API):" in text
    assert "    endpoint_pattern (request) matches regex GET /api/v1/users" in text
    assert "  Returns: Percentage rollout: v5 (80%), v6 (20%)" in text
    assert "v6: user-1, user-2" in text


def test_flag_detail_lines_unknown_environment() -> None:
    """存在しない環境はメッセージを表示する。"""
    lines = flag_detail_lines(make_flag(), "staging")
    assert lines[-1] == "Environment 'staging' not found or not accessible for this flag."


def test_environment_flag_row() -> None:
    """環境指定の一覧行。環境が無いフラグは None。"""
    flag = make_flag()
    assert environment_flag_row(flag, "production") == [
        "api-v6",
        "API v6",
        "On",
        1,
        "v5 (0)",
        "api, rollout",
        "Rollout of API v6",
    ]
    assert environment_flag_row(flag, "staging") is None


def test_render_table() -> None:
    """罫線付きテーブル。"""
    assert render_table(["key", "n"], [["a", 1], ["long-key", 22]]) == "\n".join(
        [
            "+----------+----+",
            "| key      | n  |",
            "+----------+----+",
            "| a        | 1  |",
            "| long-key | 22 |",
            "+----------+----+",
        ]
    )


def test_environment_rows() -> None:
    """環境は critical を先頭に名前順、モバイルキーは 8 文字に切り詰め。"""
    envs = [
        EnvironmentInfo(key="test", name="Test"),
        EnvironmentInfo(key="production", name="Production", critical=True, mobile_sdk_key="mob-1234567890"),
        EnvironmentInfo(
            key="staging",
            name="Staging",
            approval_settings={"required": True, "minNumApprovals": 2},
            require_comments=True,
            confirm_changes=True,
        ),
    ]
    ordered = sort_environments(envs)
    assert [e.key for e in ordered] == ["production", "staging", "test"]
    assert environment_row(ordered[0])["mobileSdkKey"] == "mob-1234..."
    staging = environment_row(ordered[1])
    assert staging["approvals"] == "Required (2)"
    assert staging["workflow"] == "Comments, confirmation"
    table = environments_table(ordered)
    assert "Mobile Sdk Key" in table.splitlines()[1]


def test_humanize_header() -> None:
    """camelCase の見出しを整形する。"""
    assert humanize_header("clientSideId") == "Client Side Id"
    assert humanize_header("key") == "Key"


def test_status_rows() -> None:
    """ステータス行は環境名順、未リクエストは Never。"""
    status = FlagStatus(
        key="api-v6",
        environments={
            "test": EnvironmentStatus(name="new"),
            "production": EnvironmentStatus(name="active", last_requested="2024-05-01T10:00:00Z", default=True),
        },
    )
    assert status_rows(status) == [
        ["production", "active", "2024-05-01 10:00:00", "true"],
        ["test", "new", "Never", "N/A"],
    ]
    assert format_last_requested("not a date") == "not a date"
