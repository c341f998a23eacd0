"""CLI のユニットテスト（CliRunner + インメモリゲートウェイ）"""

import json
from pathlib import Path
from typing import Any

from click.testing import CliRunner
from ldflags.cli import CliState, cli
from ldflags.config import Settings
from ldflags.memory import InMemoryFlagGateway
from ldflags.models import EnvironmentInfo, EnvironmentStatus, FlagStatus

PROJECT = "default"
FLAG_KEY = "api-v6-rollout-endpoints"


def make_flag(key: str = FLAG_KEY, tags: list[str] | None = None) -> dict[str, Any]:
    return {
        "key": key,
        "name": key.upper(),
        "tags": tags or [],
        "variations": [
            {"_id": "vid-1", "value": False, "name": "v5"},
            {"_id": "vid-2", "value": True, "name": "v6"},
        ],
        "environments": {
            "production": {
                "on": True,
                "fallthrough": {"variation": 0},
                "rules": [{"_id": "r1", "description": "existing", "variation": 0}],
            }
        },
    }


def make_state(gateway: InMemoryFlagGateway) -> CliState:
    settings = Settings(api_key="k", default_project=PROJECT, default_environment="production")
    return CliState(settings=settings, gateway_factory=lambda _: gateway)


def make_gateway() -> InMemoryFlagGateway:
    gateway = InMemoryFlagGateway()
    gateway.set_flag(PROJECT, make_flag())
    return gateway


def invoke(gateway: InMemoryFlagGateway, args: list[str], input: str | None = None) -> Any:
    return CliRunner().invoke(cli, args, obj=make_state(gateway), input=input)


ADD_RULE = ["flags", "add-rule", "Users API", "GET /api/v1/users", "--v5-percentage", "80", "--v6-percentage", "20"]


def test_add_rule_forced() -> None:
    """--force で確認なしに追加する。"""
    gateway = make_gateway()
    result = invoke(gateway, [*ADD_RULE, "--force"])
    assert result.exit_code == 0, result.output
    assert "Adding targeting rule to flag 'api-v6-rollout-endpoints':" in result.output
    assert "  • Rollout: 80% to v5, 20% to v6" in result.output
    assert "  • Variation 1: v6 (true)" in result.output
    assert "Current rules count: 1" in result.output
    assert f"Successfully added targeting rule 'Users API' to flag '{FLAG_KEY}'." in result.output
    assert "The rule will match: GET /api/v1/users" in result.output
    assert "Traffic split: 80% to v5, 20% to v6" in result.output
    instruction = gateway.semantic_requests[0]["instruction"]
    assert instruction["rolloutWeights"] == {"vid-1": 80000, "vid-2": 20000}


def test_add_rule_confirmed() -> None:
    """確認で yes なら追加する。"""
    gateway = make_gateway()
    result = invoke(gateway, ADD_RULE, input="y\n")
    assert result.exit_code == 0, result.output
    assert "Do you want to continue?" in result.output
    assert len(gateway.semantic_requests) == 1


def test_add_rule_cancelled() -> None:
    """確認で no ならキャンセルして終了コード 0。"""
    gateway = make_gateway()
    result = invoke(gateway, ADD_RULE, input="n\n")
    assert result.exit_code == 0
    assert "Operation cancelled." in result.output
    assert gateway.get_flag_calls == 0
    assert gateway.semantic_requests == []


def test_add_rule_json_patch() -> None:
    """--json-patch は JSON Patch で送る。"""
    gateway = make_gateway()
    result = invoke(gateway, [*ADD_RULE, "--force", "--json-patch", "--position", "1", "--comment", "c"])
    assert result.exit_code == 0, result.output
    assert "  • Using JSON Patch" in result.output
    assert "  • Comment: c" in result.output
    assert gateway.semantic_requests == []
    value = gateway.patch_requests[0]["patch"][0]["value"]
    assert [r["description"] for r in value] == ["existing", "Users API"]


def test_add_rule_invalid_percentages() -> None:
    """合計が 100 でなければエラー終了。"""
    gateway = make_gateway()
    result = invoke(
        gateway,
        ["flags", "add-rule", "r", "GET /x", "--v5-percentage", "80", "--v6-percentage", "30", "--force"],
    )
    assert result.exit_code == 1
    assert "Error: Percentages must sum to 100%. Current sum: 110%" in result.output
    assert gateway.get_flag_calls == 0


def test_add_rule_invalid_pattern() -> None:
    """パターン形式エラー。"""
    result = invoke(make_gateway(), ["flags", "add-rule", "r", "invalid-pattern", "--force"])
    assert result.exit_code == 1
    assert 'Error: Pattern must be in the format "HTTP_METHOD /path" (e.g. "GET /api/users")' in result.output


def test_add_rule_environment_not_found() -> None:
    """存在しない環境は利用可能な環境を表示してエラー終了。"""
    gateway = make_gateway()
    result = invoke(gateway, [*ADD_RULE, "--force", "--environment", "staging"])
    assert result.exit_code == 1
    assert f"Error: Environment 'staging' not found for flag '{FLAG_KEY}'." in result.output
    assert "Available environments for this flag:" in result.output
    assert "  • production" in result.output


def test_add_rule_flag_not_found() -> None:
    """存在しないフラグはエラー終了。"""
    result = invoke(make_gateway(), [*ADD_RULE, "--force", "--flag", "missing"])
    assert result.exit_code == 1
    assert "Error: Flag 'missing' not found in project 'default'." in result.output


def test_add_rule_rejected() -> None:
    """パッチが拒否されたら失敗メッセージで終了コード 1。"""
    gateway = make_gateway()
    gateway.accept_patches = False
    result = invoke(gateway, [*ADD_RULE, "--force"])
    assert result.exit_code == 1
    assert "Failed to add targeting rule." in result.output


def test_add_rule_debug_lists_project_environments() -> None:
    """--debug でプロジェクトの環境一覧を表示する。"""
    gateway = make_gateway()
    gateway.set_environments(PROJECT, [EnvironmentInfo(key="production", name="Production")])
    result = invoke(gateway, ["--debug", *ADD_RULE, "--force"])
    assert result.exit_code == 0, result.output
    assert "DEBUG: Available environments in project:" in result.output
    assert "  • production (Production)" in result.output
    assert "DEBUG: Rule payload:" in result.output


def test_flags_list_json() -> None:
    """--json は stdout に JSON のみを出す。"""
    gateway = make_gateway()
    gateway.set_flag(PROJECT, make_flag("beta", tags=["web"]))
    result = invoke(gateway, ["flags", "list", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert sorted(item["key"] for item in data) == ["api-v6-rollout-endpoints", "beta"]


def test_flags_list_environment_table_with_tag() -> None:
    """タグで絞り込み、環境の状態を表示する。"""
    gateway = make_gateway()
    gateway.set_flag(PROJECT, make_flag("beta", tags=["web"]))
    result = invoke(gateway, ["flags", "list", "--tag", "web"])
    assert result.exit_code == 0, result.output
    assert "| beta " in result.output
    assert FLAG_KEY not in result.output
    assert "| On " in result.output
    assert "Total flags: 1" in result.output


def test_flags_list_unknown_tag() -> None:
    """該当タグが無ければ警告のみ。"""
    result = invoke(make_gateway(), ["flags", "list", "--tag", "none"])
    assert result.exit_code == 0
    assert "No flags found with tag: none" in result.output


def test_flags_show() -> None:
    """フラグ詳細の表示。"""
    result = invoke(make_gateway(), ["flags", "show", "--environment", "production"])
    assert result.exit_code == 0, result.output
    assert "==== Flag Details ====" in result.output
    assert f"Key: {FLAG_KEY}" in result.output
    assert "==== Environment: production ====" in result.output
    assert "Rule 1 (existing):" in result.output


def test_flags_show_not_found() -> None:
    """存在しないフラグはエラー終了。"""
    result = invoke(make_gateway(), ["flags", "show", "missing"])
    assert result.exit_code == 1
    assert "Error: Flag 'missing' not found in project 'default'." in result.output


def test_flags_status() -> None:
    """ステータスのテーブルと説明を表示する。"""
    gateway = make_gateway()
    gateway.set_flag_status(
        PROJECT,
        FlagStatus(key=FLAG_KEY, environments={"production": EnvironmentStatus(name="launched", default=False)}),
    )
    result = invoke(gateway, ["flags", "status", FLAG_KEY])
    assert result.exit_code == 0, result.output
    assert f"Flag Status: {FLAG_KEY} (Project: default)" in result.output
    assert "| production  | launched | Never          | false         |" in result.output
    assert "Status Descriptions:" in result.output
    assert "  launched - Flag has been rolled out to all users (100% rule)" in result.output


def test_environments_list() -> None:
    """環境一覧のテーブルとキー一覧。"""
    gateway = make_gateway()
    gateway.set_environments(
        PROJECT,
        [
            EnvironmentInfo(key="test", name="Test"),
            EnvironmentInfo(key="production", name="Production", critical=True),
        ],
    )
    result = invoke(gateway, ["environments", "list"])
    assert result.exit_code == 0, result.output
    assert "Total environments: 2" in result.output
    assert "  production (critical)\n  test\n" in result.output


def test_environments_list_json() -> None:
    """環境一覧の JSON 出力。"""
    gateway = make_gateway()
    gateway.set_environments(PROJECT, [EnvironmentInfo(key="production", name="Production")])
    result = invoke(gateway, ["environments", "list", "--json"])
    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)[0]["key"] == "production"


def test_missing_api_key_from_config(tmp_path: Path) -> None:
    """API キー未設定なら HTTP ゲートウェイ作成時にエラー終了。"""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("default_project: default\n")
    result = CliRunner().invoke(
        cli,
        ["--config", str(config_file), "flags", "list"],
        env={"LAUNCHDARKLY_API_KEY": "", "LDFLAGS_CONFIG": None},
    )
    assert result.exit_code == 1
    assert "Error: LaunchDarkly API key is required." in result.output


def test_missing_project() -> None:
    """プロジェクト未指定ならエラー終了。"""
    gateway = make_gateway()
    state = CliState(settings=Settings(api_key="k"), gateway_factory=lambda _: gateway)
    result = CliRunner().invoke(cli, ["environments", "list"], obj=state)
    assert result.exit_code == 1
    assert "Error: No project specified and no default project configured." in result.output
