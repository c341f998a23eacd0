"""フラグ・環境・ステータスのテキスト表示"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from .exceptions import ValidationError
from .models import (
    TIMESTAMP_FORMAT,
    Clause,
    EnvironmentConfig,
    EnvironmentInfo,
    FlagDocument,
    FlagStatus,
    Rollout,
    Rule,
    Variation,
    VariationId,
    resolve_variation_index,
)

OPERATOR_DESCRIPTIONS: dict[str, str] = {
    "in": "is one of",
    "endsWith": "ends with",
    "startsWith": "starts with",
    "matches": "matches regex",
    "contains": "contains",
    "lessThan": "is less than",
    "lessThanOrEqual": "is less than or equal to",
    "greaterThan": "is greater than",
    "greaterThanOrEqual": "is greater than or equal to",
    "before": "is before",
    "after": "is after",
    "segmentMatch": "is in segment",
    "semVerEqual": "version equals",
    "semVerLessThan": "version is less than",
    "semVerGreaterThan": "version is greater than",
}

STATUS_DESCRIPTIONS: list[tuple[str, str]] = [
    ("new", "Flag has been created but not used yet"),
    ("inactive", "Flag exists but is not requested by your application"),
    ("active", "Flag is actively being requested by your application"),
    ("launched", "Flag has been rolled out to all users (100% rule)"),
]

STATUS_COLORS: dict[str, str] = {
    "new": "blue",
    "inactive": "yellow",
    "active": "green",
    "launched": "cyan",
}


def yes_no(value: bool) -> str:
    return "Yes" if value else "No"


def to_json(data: Any) -> str:
    return json.dumps(data, indent=4)


def render_table(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    """ASCII 罫線付きのテーブル文字列を返す。"""
    cells = [[str(c) for c in row] for row in rows]
    widths = [len(h) for h in headers]
    for row in cells:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    border = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

    def line(values: Sequence[str]) -> str:
        return "| " + " | ".join(v.ljust(widths[i]) for i, v in enumerate(values)) + " |"

    out = [border, line(list(headers)), border]
    out.extend(line(row) for row in cells)
    out.append(border)
    return "\n".join(out)


def humanize_header(name: str) -> str:
    """"clientSideId" -> "Client Side Id" """
    spaced = re.sub(r"(?<!^)([A-Z])", r" \1", name)
    return spaced[:1].upper() + spaced[1:]


# --- rules ---


def operator_description(op: str) -> str:
    return OPERATOR_DESCRIPTIONS.get(op, op)


def describe_clause(clause: Clause) -> str:
    context_kind = f" ({clause.context_kind})" if clause.context_kind else ""
    negated = "not " if clause.negate else ""
    values = ", ".join(str(v) for v in clause.values)
    return f"{clause.attribute}{context_kind} {negated}{operator_description(clause.op)} {values}"


def variation_name(variations: Sequence[Variation], index: int) -> str:
    if 0 <= index < len(variations) and variations[index].name:
        return str(variations[index].name)
    return f"Variation {index}"


def describe_rollout(rollout: Rollout, variations: Sequence[Variation]) -> str:
    parts = []
    for weight in rollout.weights:
        try:
            name = variation_name(variations, resolve_variation_index(weight.variation, list(variations)))
        except ValidationError:
            name = weight.variation.id if isinstance(weight.variation, VariationId) else str(weight.variation)
        parts.append(f"{name} ({weight.weight / 1000:g}%)")
    return "Percentage rollout: " + ", ".join(parts)


def describe_rule_outcome(rule: Rule, variations: Sequence[Variation]) -> str:
    if rule.variation is not None:
        try:
            return variation_name(variations, resolve_variation_index(rule.variation, list(variations)))
        except ValidationError:
            return "Unknown"
    if rule.rollout is not None:
        return describe_rollout(rule.rollout, variations)
    return "Unknown"


def describe_fallthrough(fallthrough: dict[str, Any] | None, variations: Sequence[Variation]) -> str:
    if fallthrough is None:
        return "N/A"
    if fallthrough.get("variation") is not None:
        return variation_name(variations, int(fallthrough["variation"]))
    if fallthrough.get("rollout"):
        return describe_rollout(Rollout.from_dict(fallthrough["rollout"]), variations)
    return json.dumps(fallthrough)


def rule_lines(rule: Rule, variations: Sequence[Variation], number: int) -> list[str]:
    """ルール 1 件の説明行を返す。number は 1 始まり。"""
    title = f" ({rule.description})" if rule.description else ""
    lines = [f"Rule {number}{title}:"]
    if rule.clauses:
        lines.append("  Conditions:")
        lines.extend(f"    {describe_clause(c)}" for c in rule.clauses)
    lines.append(f"  Returns: {describe_rule_outcome(rule, variations)}")
    lines.append(f"  Track Events: {yes_no(rule.track_events)}")
    return lines


# --- flags show ---


def _target_lines(targets: list[dict[str, Any]], variations: Sequence[Variation]) -> list[str]:
    lines = []
    for target in targets:
        values = target.get("values") or []
        if not values:
            continue
        name = variation_name(variations, int(target.get("variation", 0)))
        context_kind = f" ({target['contextKind']})" if target.get("contextKind") else ""
        lines.append(f"{name}{context_kind}: {', '.join(str(v) for v in values)}")
    return lines


def environment_detail_lines(flag: FlagDocument, environment: EnvironmentConfig) -> list[str]:
    variations = flag.variations
    lines = ["", f"==== Environment: {environment.key} ====", f"Status: {'ON' if environment.on else 'OFF'}"]
    if environment.last_modified is not None:
        lines.append(f"Last Modified: {flag_env_last_modified(environment)}")
    if environment.version is not None:
        lines.append(f"Version: {environment.version}")
    if environment.fallthrough is not None:
        lines.append(f"Default rule: {describe_fallthrough(environment.fallthrough, variations)}")

    if environment.rules:
        lines.extend(["", "==== Targeting Rules ===="])
        for number, rule in enumerate(environment.rules, start=1):
            lines.extend(rule_lines(rule, variations, number))
            lines.append("")

    user_targets = _target_lines(environment.targets, variations)
    if user_targets:
        lines.append("==== User Targets ====")
        lines.extend(user_targets)

    context_targets = _target_lines(environment.context_targets, variations)
    if context_targets:
        lines.extend(["", "==== Context Targets ===="])
        lines.extend(context_targets)

    if environment.prerequisites:
        lines.extend(["", "==== Prerequisites ===="])
        for prereq in environment.prerequisites:
            lines.append(f"Flag {prereq.get('key')} must be variation {prereq.get('variation')}")

    summary_variations = (environment.summary or {}).get("variations") or {}
    if summary_variations:
        lines.extend(["", "==== Environment Summary ===="])
        for index, summary in summary_variations.items():
            lines.append(f"{variation_name(variations, int(index))}:")
            lines.append(f"  Target users: {summary.get('targets', 0)}")
            lines.append(f"  Target contexts: {summary.get('contextTargets', 0)}")
            lines.append(f"  Rules: {summary.get('rules', 0)}")
            if summary.get("isFallthrough"):
                lines.append("  Is fallthrough variation")
            if summary.get("isOff"):
                lines.append("  Is off variation")
    return lines


def flag_env_last_modified(environment: EnvironmentConfig) -> str:
    return environment.to_details()["lastModified"] or "Unknown"


def flag_detail_lines(flag: FlagDocument, environment_key: str | None = None) -> list[str]:
    """flags show のテキスト出力行を返す。"""
    details = flag.to_details()
    lines = [
        "==== Flag Details ====",
        f"Key: {flag.key}",
        f"Name: {flag.name}",
        f"Description: {flag.description or 'N/A'}",
        f"Kind: {flag.kind or 'N/A'}",
        f"Created: {details['creationDate'] or 'Unknown'}",
    ]
    if flag.tags:
        lines.append(f"Tags: {', '.join(flag.tags)}")
    lines.extend(
        [
            f"Temporary: {yes_no(flag.temporary)}",
            f"Archived: {yes_no(flag.archived)}",
            f"Deprecated: {yes_no(flag.deprecated)}",
        ]
    )

    if flag.client_side_availability is not None:
        csa = flag.client_side_availability
        lines.extend(
            [
                "",
                "==== Client-side Availability ====",
                f"Using Mobile Key: {yes_no(bool(csa.get('usingMobileKey')))}",
                f"Using Environment ID: {yes_no(bool(csa.get('usingEnvironmentId')))}",
            ]
        )

    if flag.defaults is not None:
        lines.extend(
            [
                "",
                "==== Default Settings ====",
                f"On Variation: {flag.defaults.get('onVariation', 'N/A')}",
                f"Off Variation: {flag.defaults.get('offVariation', 'N/A')}",
            ]
        )

    if flag.maintainer is not None:
        m = flag.maintainer
        full_name = f"{m.get('firstName', '')} {m.get('lastName', '')}".strip()
        lines.extend(
            [
                "",
                "==== Maintainer ====",
                f"Name: {full_name or 'N/A'}",
                f"Email: {m.get('email', 'N/A')}",
                f"Role: {m.get('role', 'N/A')}",
            ]
        )

    if flag.variations:
        lines.extend(["", "==== Variations ===="])
        for index, variation in enumerate(flag.variations):
            lines.append(f"Variation {index}:")
            lines.append(f"  Value: {json.dumps(variation.value)}")
            lines.append(f"  Name: {variation.name or 'N/A'}")
            lines.append(f"  Description: {variation.description or 'N/A'}")
            if variation.id:
                lines.append(f"  ID: {variation.id}")
            lines.append("")

    if flag.custom_properties:
        lines.extend(["", "==== Custom Properties ===="])
        for key, prop in flag.custom_properties.items():
            value = prop.get("value") if isinstance(prop, dict) else prop
            name = prop.get("name", key) if isinstance(prop, dict) else key
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            lines.append(f"{name}: {value}")

    if environment_key:
        environment = flag.environment(environment_key)
        if environment is None:
            lines.append(
                f"Environment '{environment_key}' not found or not accessible for this flag."
            )
        else:
            lines.extend(environment_detail_lines(flag, environment))
    return lines


# --- flags list ---

FLAG_HEADERS = ["key", "name", "kind", "tags", "temporary", "variations", "description"]
ENVIRONMENT_FLAG_HEADERS = ["key", "name", "status", "rules", "fallthrough", "tags", "description"]


def flag_row(flag: FlagDocument) -> list[Any]:
    return [
        flag.key,
        flag.name,
        flag.kind or "N/A",
        ", ".join(flag.tags),
        yes_no(flag.temporary),
        len(flag.variations),
        flag.description or "",
    ]


def environment_flag_row(flag: FlagDocument, environment_key: str) -> list[Any] | None:
    """環境を指定した一覧の行。フラグに環境が無ければ None。"""
    environment = flag.environment(environment_key)
    if environment is None:
        return None
    fallthrough_index = (environment.fallthrough or {}).get("variation")
    if isinstance(fallthrough_index, int) and 0 <= fallthrough_index < len(flag.variations):
        fallthrough = f"{flag.variations[fallthrough_index].name or ''} ({fallthrough_index})"
    else:
        fallthrough = f"Variation {fallthrough_index if fallthrough_index is not None else 'N/A'}"
    return [
        flag.key,
        flag.name,
        "On" if environment.on else "Off",
        len(environment.rules),
        fallthrough,
        ", ".join(flag.tags),
        flag.description or "",
    ]


# --- environments list ---


def sort_environments(environments: Sequence[EnvironmentInfo]) -> list[EnvironmentInfo]:
    """critical を先頭に、その後は名前順。"""
    return sorted(environments, key=lambda env: (not env.critical, env.name))


def environment_row(env: EnvironmentInfo) -> dict[str, str]:
    row = {
        "key": env.key,
        "name": env.name,
        "critical": yes_no(env.critical),
        "secure": yes_no(env.secure),
    }
    if env.color:
        row["color"] = f"#{env.color}"
    if env.client_side_id:
        row["clientSideId"] = env.client_side_id
    if env.mobile_sdk_key:
        row["mobileSdkKey"] = env.mobile_sdk_key[:8] + "..."
    if env.approval_settings:
        approvals = "Required" if env.approval_settings.get("required") else "Optional"
        min_approvals = env.approval_settings.get("minNumApprovals") or 0
        if min_approvals > 1:
            approvals += f" ({min_approvals})"
        row["approvals"] = approvals
    workflow = []
    if env.require_comments:
        workflow.append("comments")
    if env.confirm_changes:
        workflow.append("confirmation")
    if workflow:
        text = ", ".join(workflow)
        row["workflow"] = text[:1].upper() + text[1:]
    if env.tags:
        row["tags"] = ", ".join(env.tags)
    return row


def environments_table(environments: Sequence[EnvironmentInfo]) -> str:
    rows = [environment_row(env) for env in environments]
    columns: list[str] = []
    for row in rows:
        for column in row:
            if column not in columns:
                columns.append(column)
    return render_table(
        [humanize_header(c) for c in columns],
        [[row.get(c, "") for c in columns] for row in rows],
    )


# --- flags status ---

STATUS_HEADERS = ["Environment", "Status", "Last Requested", "Default Value"]


def format_last_requested(value: str | None) -> str:
    if not value:
        return "Never"
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime(TIMESTAMP_FORMAT)
    except ValueError:
        return value


def status_rows(status: FlagStatus) -> list[list[str]]:
    rows = []
    for env_key in sorted(status.environments):
        env_status = status.environments[env_key]
        rows.append(
            [
                env_key,
                env_status.name,
                format_last_requested(env_status.last_requested),
                json.dumps(env_status.default) if env_status.default is not None else "N/A",
            ]
        )
    return rows
