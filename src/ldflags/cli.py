"""ldflags コマンドライン

Commands:
    ldflags flags list           - フラグ一覧
    ldflags flags show           - フラグ詳細
    ldflags flags status         - 環境ごとのフラグ利用状況
    ldflags flags add-rule       - エンドポイントパターンのターゲティングルールを追加
    ldflags environments list    - プロジェクトの環境一覧
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, NoReturn

import click
import structlog

from .config import Settings
from .exceptions import FlagsError, NotFoundError
from .gateway import FlagGateway
from .http_gateway import HttpFlagGateway
from .loader import load
from .logger import new_logger
from .presenter import (
    ENVIRONMENT_FLAG_HEADERS,
    FLAG_HEADERS,
    STATUS_COLORS,
    STATUS_DESCRIPTIONS,
    STATUS_HEADERS,
    environment_flag_row,
    environments_table,
    flag_detail_lines,
    flag_row,
    render_table,
    sort_environments,
    status_rows,
    to_json,
    variation_name,
)
from .service import AddRuleOutcome, AddRuleRequest, AddRuleService
from .validation import validate_project_key

logger = structlog.get_logger(__name__)


@dataclass
class CliState:
    """コマンド間で共有する設定とゲートウェイ。"""

    settings: Settings
    gateway_factory: Callable[[Settings], FlagGateway] = HttpFlagGateway
    debug: bool = False
    _gateway: FlagGateway | None = field(default=None, repr=False)

    def gateway(self) -> FlagGateway:
        if self._gateway is None:
            self._gateway = self.gateway_factory(self.settings)
        return self._gateway


pass_state = click.make_pass_decorator(CliState)


def _fail(error: FlagsError) -> NoReturn:
    click.secho(f"Error: {error.message}", fg="red", err=True)
    if isinstance(error, NotFoundError) and error.resource == "environment":
        click.echo("")
        click.echo("Available environments for this flag:")
        if error.available:
            for key in error.available:
                click.echo(f"  • {key}")
        else:
            click.echo("  No environments found in flag data.")
    sys.exit(1)


def _info(message: str) -> None:
    click.secho(message, fg="green")


def _warn(message: str) -> None:
    click.secho(message, fg="yellow", err=True)


def _project(state: CliState, project: str | None) -> str:
    project_key = project or state.settings.default_project
    validate_project_key(project_key)
    return project_key


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    envvar="LDFLAGS_CONFIG",
    help="Path to the YAML configuration file.",
)
@click.option("--debug", is_flag=True, help="Show detailed debug information.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, debug: bool) -> None:
    """Manage LaunchDarkly feature flags from the command line."""
    if isinstance(ctx.obj, CliState):
        state = ctx.obj
        state.debug = state.debug or debug
    else:
        try:
            settings = load(config_path)
        except FlagsError as e:
            _fail(e)
        state = CliState(settings=settings, debug=debug)
        ctx.obj = state

    level = "DEBUG" if state.debug else state.settings.log.level
    new_logger(level, state.settings.log.format)
    logger.debug("cli started", api_url=state.settings.api_url, command=ctx.invoked_subcommand)


@cli.group()
def flags() -> None:
    """Feature flag commands."""


@cli.group()
def environments() -> None:
    """Project environment commands."""


@flags.command("list")
@click.option("--project", help="LaunchDarkly project key.")
@click.option("--environment", help="Show status, rules and fallthrough for this environment.")
@click.option("--tag", help="Only list flags carrying this tag.")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@pass_state
def flags_list(
    state: CliState,
    project: str | None,
    environment: str | None,
    tag: str | None,
    as_json: bool,
) -> None:
    """List the flags of a project."""
    try:
        project_key = _project(state, project)
        environment_key = environment or state.settings.default_environment
        gateway = state.gateway()
        items = gateway.get_flags(project_key)
    except FlagsError as e:
        _fail(e)

    if not items:
        _warn(f"No flags found in project: {project_key}")
        return
    if tag:
        items = [flag for flag in items if tag in flag.tags]
        if not items:
            _warn(f"No flags found with tag: {tag}")
            return

    if as_json:
        click.echo(to_json([flag.to_summary() for flag in items]))
        return

    _info(f"Getting LaunchDarkly flags for project: {project_key}")
    if environment_key:
        headers = ENVIRONMENT_FLAG_HEADERS
        rows = []
        for summary in items:
            try:
                flag = gateway.get_flag(project_key, summary.key)
            except FlagsError as e:
                logger.debug("flag details failed", flag=summary.key, error=str(e))
                continue
            row = environment_flag_row(flag, environment_key) if flag is not None else None
            if row is None:
                logger.debug("environment missing for flag", flag=summary.key, environment=environment_key)
                continue
            rows.append(row)
    else:
        headers = FLAG_HEADERS
        rows = [flag_row(flag) for flag in items]

    rows.sort(key=lambda row: row[0])
    click.echo(render_table(headers, rows))
    _info(f"Total flags: {len(rows)}")


@flags.command("show")
@click.argument("flag_key", required=False)
@click.option("--project", help="LaunchDarkly project key.")
@click.option("--environment", help="Show the configuration of this environment.")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@pass_state
def flags_show(
    state: CliState,
    flag_key: str | None,
    project: str | None,
    environment: str | None,
    as_json: bool,
) -> None:
    """Show detailed information about a flag."""
    flag_key = flag_key or state.settings.default_flag
    try:
        project_key = _project(state, project)
        flag = state.gateway().get_flag(project_key, flag_key)
        if flag is None:
            raise NotFoundError("flag", flag_key, f"Flag '{flag_key}' not found in project '{project_key}'.")
    except FlagsError as e:
        _fail(e)

    environment_key = environment or state.settings.default_environment or None
    if as_json:
        details = flag.to_details()
        if environment_key:
            details["environments"] = {
                k: v for k, v in details["environments"].items() if k == environment_key
            }
        click.echo(to_json(details))
        return
    for line in flag_detail_lines(flag, environment_key):
        click.echo(line)


@flags.command("status")
@click.argument("flag_key", required=False)
@click.option("--project", help="LaunchDarkly project key.")
@click.option("--environment", help="Only show the status in this environment.")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@pass_state
def flags_status(
    state: CliState,
    flag_key: str | None,
    project: str | None,
    environment: str | None,
    as_json: bool,
) -> None:
    """Show the usage status of a flag per environment."""
    flag_key = flag_key or state.settings.default_flag
    try:
        project_key = _project(state, project)
        status = state.gateway().get_flag_status(project_key, flag_key, environment)
        if status is None:
            raise NotFoundError("flag", flag_key, f"Flag '{flag_key}' not found in project '{project_key}'.")
    except FlagsError as e:
        _fail(e)

    if as_json:
        click.echo(to_json(status.to_dict()))
        return

    _info(f"Flag Status: {flag_key} (Project: {project_key})")
    click.echo("")
    click.echo(render_table(STATUS_HEADERS, status_rows(status)))
    click.echo("")
    _info("Status Descriptions:")
    for name, description in STATUS_DESCRIPTIONS:
        click.echo(f"  {click.style(name, fg=STATUS_COLORS[name])} - {description}")


@flags.command("add-rule")
@click.argument("name")
@click.argument("pattern")
@click.option("--project", help="LaunchDarkly project key.")
@click.option("--environment", help="Environment to add the rule to.")
@click.option("--flag", "flag_key", help="The feature flag key to add the rule to.")
@click.option("--v5-percentage", type=int, default=100, show_default=True, help="Percentage for v5 (0-100).")
@click.option("--v6-percentage", type=int, default=0, show_default=True, help="Percentage for v6 (0-100).")
@click.option("--context-kind", default="request", show_default=True, help="Context kind for the rule.")
@click.option("--bucket-by", default="key", show_default=True, help="Attribute to bucket by for the rollout.")
@click.option("--position", type=int, default=0, show_default=True, help="Position to insert the rule (0 is first).")
@click.option("--comment", help="Comment to include with the change.")
@click.option("--force", is_flag=True, help="Do not ask for confirmation.")
@click.option("--no-track", is_flag=True, help="Disable event tracking for this rule.")
@click.option("--json-patch", is_flag=True, help="Use JSON Patch instead of a semantic patch.")
@pass_state
def flags_add_rule(
    state: CliState,
    name: str,
    pattern: str,
    project: str | None,
    environment: str | None,
    flag_key: str | None,
    v5_percentage: int,
    v6_percentage: int,
    context_kind: str,
    bucket_by: str,
    position: int,
    comment: str | None,
    force: bool,
    no_track: bool,
    json_patch: bool,
) -> None:
    """Add a targeting rule for an endpoint pattern to a flag.

    PATTERN has the form "METHOD /path", e.g. "GET /api/users".
    """
    request = AddRuleRequest(
        name=name,
        pattern=pattern,
        project_key=project or state.settings.default_project,
        environment_key=environment or state.settings.default_environment,
        flag_key=flag_key or state.settings.default_flag,
        percentages=(v5_percentage, v6_percentage),
        context_kind=context_kind,
        bucket_by=bucket_by,
        position=position,
        comment=comment,
        track_events=not no_track,
        use_json_patch=json_patch,
        force=force,
    )
    try:
        request.validate()
    except FlagsError as e:
        _fail(e)

    _info(f"Adding targeting rule to flag '{request.flag_key}':")
    click.echo(f"  • Project: {request.project_key}")
    click.echo(f"  • Environment: {request.environment_key}")
    click.echo(f"  • Rule name: {name}")
    click.echo(f"  • Endpoint pattern: {pattern}")
    click.echo(f"  • Rollout: {v5_percentage}% to v5, {v6_percentage}% to v6")
    click.echo(f"  • Context kind: {context_kind}")
    click.echo(f"  • Bucket by: {bucket_by}")
    click.echo(f"  • Position: {position}")
    click.echo(f"  • Track events: {'Yes' if request.track_events else 'No'}")
    click.echo(f"  • Using {'JSON Patch' if json_patch else 'Semantic Patch'}")
    if comment:
        click.echo(f"  • Comment: {comment}")

    try:
        gateway = state.gateway()
        if state.debug:
            _debug_environments(gateway, request.project_key)
        service = AddRuleService(gateway, confirm=lambda prompt, default: click.confirm(prompt, default=default))
        result = service.run(request)
    except FlagsError as e:
        _fail(e)

    if result.outcome is AddRuleOutcome.CANCELLED:
        click.echo("Operation cancelled.")
        return

    plan = result.plan
    if plan is not None:
        click.echo("")
        _info("Variations detected:")
        for index, variation in enumerate(plan.flag.variations):
            name_text = variation_name(plan.flag.variations, index)
            click.echo(f"  • Variation {index}: {name_text} ({json.dumps(variation.value)})")
        click.echo("")
        _info(f"Current rules count: {len(plan.environment.rules)}")
        for warning in plan.warnings:
            _warn(warning)
        if state.debug:
            click.echo("")
            _info("DEBUG: Rule payload:")
            click.echo(to_json(plan.rule.to_dict()))

    if result.outcome is AddRuleOutcome.FAILED:
        click.secho("Failed to add targeting rule.", fg="red", err=True)
        sys.exit(1)

    _info(f"Successfully added targeting rule '{name}' to flag '{request.flag_key}'.")
    click.echo(f"The rule will match: {click.style(pattern, fg='yellow')}")
    click.echo(
        f"Traffic split: {click.style(f'{v5_percentage}%', fg='green')} to v5, "
        f"{click.style(f'{v6_percentage}%', fg='green')} to v6"
    )


def _debug_environments(gateway: FlagGateway, project_key: str) -> None:
    click.echo("")
    _info("DEBUG: Available environments in project:")
    try:
        for env in gateway.get_project_environments(project_key):
            click.echo(f"  • {env.key} ({env.name})")
    except FlagsError as e:
        _warn(f"  Error retrieving project environments: {e.message}")


@environments.command("list")
@click.option("--project", help="LaunchDarkly project key.")
@click.option("--json", "as_json", is_flag=True, help="Output in JSON format.")
@pass_state
def environments_list(state: CliState, project: str | None, as_json: bool) -> None:
    """List the environments of a project."""
    try:
        project_key = _project(state, project)
        items = state.gateway().get_project_environments(project_key)
    except FlagsError as e:
        _fail(e)

    if not items:
        _warn(f"No environments found for project: {project_key}")
        return
    if as_json:
        click.echo(to_json([env.to_dict() for env in items]))
        return

    _info(f"Fetching environments for project: {project_key}")
    ordered = sort_environments(items)
    click.echo(environments_table(ordered))
    _info(f"Total environments: {len(ordered)}")
    click.echo("")
    _info("Environment Keys:")
    for env in ordered:
        critical = " (critical)" if env.critical else ""
        click.echo(f"  {env.key}{critical}")


def main(argv: list[str] | None = None) -> Any:
    return cli.main(args=argv, prog_name="ldflags")
