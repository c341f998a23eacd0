"""フィーチャーフラグ データモデル

リモートサービスの JSON ドキュメントはゲートウェイ境界で一度だけパースし、
以降はここで定義する型で扱う。
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .exceptions import ValidationError

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class VariationId:
    """安定 ID によるバリエーション参照。"""

    id: str

    @property
    def key(self) -> str:
        return self.id


@dataclass(frozen=True)
class VariationIndex:
    """位置インデックスによるバリエーション参照。"""

    index: int

    @property
    def key(self) -> str:
        return str(self.index)


VariationRef = VariationId | VariationIndex


def resolve_variation_index(ref: VariationRef, variations: list[Variation]) -> int:
    """参照をフラグ内のバリエーション位置に解決する。"""
    if isinstance(ref, VariationIndex):
        return ref.index
    for index, variation in enumerate(variations):
        if variation.id == ref.id:
            return index
    raise ValidationError("variations", f"Unknown variation id: {ref.id}")


def format_timestamp(millis: int | None) -> str | None:
    """ミリ秒エポックを表示用文字列に変換する (UTC)。"""
    if millis is None:
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime(TIMESTAMP_FORMAT)


@dataclass
class Variation:
    """フラグのバリエーション。読み取り専用。"""

    value: Any
    id: str | None = None
    name: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Variation:
        return cls(
            value=data.get("value"),
            id=data.get("_id"),
            name=data.get("name"),
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"value": self.value}
        if self.id is not None:
            result["_id"] = self.id
        if self.name is not None:
            result["name"] = self.name
        if self.description is not None:
            result["description"] = self.description
        return result


@dataclass(frozen=True)
class Clause:
    """ターゲティングルールの条件 1 つ。"""

    attribute: str
    op: str
    values: tuple[Any, ...] = ()
    negate: bool = False
    context_kind: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Clause:
        return cls(
            attribute=data.get("attribute", ""),
            op=data.get("op", ""),
            values=tuple(data.get("values", [])),
            negate=bool(data.get("negate", False)),
            context_kind=data.get("contextKind"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "attribute": self.attribute,
            "op": self.op,
            "values": list(self.values),
            "negate": self.negate,
        }
        if self.context_kind is not None:
            result["contextKind"] = self.context_kind
        return result


@dataclass(frozen=True)
class RolloutWeight:
    """ロールアウトの重み。weight はパーセント x 1000 (0-100000)。"""

    variation: VariationRef
    weight: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RolloutWeight:
        ref: VariationRef
        if data.get("variationId") is not None:
            ref = VariationId(data["variationId"])
        else:
            ref = VariationIndex(int(data.get("variation", 0)))
        return cls(variation=ref, weight=int(data.get("weight", 0)))

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.variation, VariationId):
            return {"variationId": self.variation.id, "weight": self.weight}
        return {"variation": self.variation.index, "weight": self.weight}


@dataclass(frozen=True)
class Rollout:
    """パーセンテージロールアウト。"""

    weights: tuple[RolloutWeight, ...]
    bucket_by: str | None = None
    context_kind: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rollout:
        return cls(
            weights=tuple(RolloutWeight.from_dict(w) for w in data.get("variations", [])),
            bucket_by=data.get("bucketBy"),
            context_kind=data.get("contextKind"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"variations": [w.to_dict() for w in self.weights]}
        if self.bucket_by is not None:
            result["bucketBy"] = self.bucket_by
        if self.context_kind is not None:
            result["contextKind"] = self.context_kind
        return result


@dataclass(frozen=True)
class Rule:
    """ターゲティングルール。生成後は変更しない値オブジェクト。

    サービスから取得したルールは raw に元のドキュメントを保持し、
    ドキュメントパッチでそのまま再送する。
    """

    description: str = ""
    clauses: tuple[Clause, ...] = ()
    track_events: bool = False
    rollout: Rollout | None = None
    variation: VariationRef | None = None
    id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rule:
        variation: VariationRef | None = None
        if data.get("variationId") is not None:
            variation = VariationId(data["variationId"])
        elif data.get("variation") is not None:
            variation = VariationIndex(int(data["variation"]))
        rollout = data.get("rollout")
        return cls(
            description=data.get("description", ""),
            clauses=tuple(Clause.from_dict(c) for c in data.get("clauses", [])),
            track_events=bool(data.get("trackEvents", False)),
            rollout=Rollout.from_dict(rollout) if rollout else None,
            variation=variation,
            id=data.get("_id"),
            raw=copy.deepcopy(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """ルールの汎用表現を返す。取得済みルールは元のドキュメント。"""
        if self.raw:
            return copy.deepcopy(self.raw)
        result: dict[str, Any] = {
            "description": self.description,
            "trackEvents": self.track_events,
            "clauses": [c.to_dict() for c in self.clauses],
        }
        if self.rollout is not None:
            result["rollout"] = self.rollout.to_dict()
        elif isinstance(self.variation, VariationId):
            result["variationId"] = self.variation.id
        elif isinstance(self.variation, VariationIndex):
            result["variation"] = self.variation.index
        return result

    def to_document(self, variations: list[Variation]) -> dict[str, Any]:
        """フラグドキュメントのルール一覧に入れる形へ変換する。

        ルールドキュメントはバリエーションを位置で参照するため、ID 参照は
        variations を使ってインデックスに解決する。
        """
        if self.raw:
            return copy.deepcopy(self.raw)
        result: dict[str, Any] = {
            "description": self.description,
            "clauses": [c.to_dict() for c in self.clauses],
            "trackEvents": self.track_events,
        }
        if self.rollout is not None:
            rollout: dict[str, Any] = {
                "variations": [
                    {
                        "variation": resolve_variation_index(w.variation, variations),
                        "weight": w.weight,
                    }
                    for w in self.rollout.weights
                ],
            }
            if self.rollout.bucket_by is not None:
                rollout["bucketBy"] = self.rollout.bucket_by
            if self.rollout.context_kind is not None:
                rollout["contextKind"] = self.rollout.context_kind
            result["rollout"] = rollout
        elif self.variation is not None:
            result["variation"] = resolve_variation_index(self.variation, variations)
        return result


@dataclass
class EnvironmentConfig:
    """フラグの環境別設定。"""

    key: str
    name: str = ""
    on: bool = False
    rules: list[Rule] = field(default_factory=list)
    fallthrough: dict[str, Any] | None = None
    off_variation: int | None = None
    targets: list[dict[str, Any]] = field(default_factory=list)
    context_targets: list[dict[str, Any]] = field(default_factory=list)
    prerequisites: list[dict[str, Any]] = field(default_factory=list)
    version: int | None = None
    last_modified: int | None = None
    track_events: bool = False
    summary: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> EnvironmentConfig:
        return cls(
            key=key,
            name=data.get("_environmentName") or data.get("name") or key,
            on=bool(data.get("on", False)),
            rules=[Rule.from_dict(r) for r in data.get("rules") or []],
            fallthrough=data.get("fallthrough"),
            off_variation=data.get("offVariation"),
            targets=list(data.get("targets") or []),
            context_targets=list(data.get("contextTargets") or []),
            prerequisites=list(data.get("prerequisites") or []),
            version=data.get("version"),
            last_modified=data.get("lastModified"),
            track_events=bool(data.get("trackEvents", False)),
            summary=data.get("_summary") or data.get("summary"),
        )

    def to_details(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "on": self.on,
            "lastModified": format_timestamp(self.last_modified),
            "version": self.version,
            "targets": self.targets,
            "contextTargets": self.context_targets,
            "rules": [r.to_dict() for r in self.rules],
            "fallthrough": self.fallthrough,
            "offVariation": self.off_variation,
            "prerequisites": self.prerequisites,
            "trackEvents": self.track_events,
            "summary": self.summary,
        }


@dataclass
class FlagDocument:
    """フィーチャーフラグ全体。"""

    key: str
    name: str = ""
    description: str | None = None
    kind: str | None = None
    creation_date: int | None = None
    tags: list[str] = field(default_factory=list)
    temporary: bool = False
    archived: bool = False
    deprecated: bool = False
    include_in_snippet: bool = False
    client_side_availability: dict[str, Any] | None = None
    defaults: dict[str, Any] | None = None
    custom_properties: dict[str, Any] = field(default_factory=dict)
    maintainer: dict[str, Any] | None = None
    variations: list[Variation] = field(default_factory=list)
    environments: dict[str, EnvironmentConfig] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FlagDocument:
        environments = data.get("environments") or {}
        return cls(
            key=data["key"],
            name=data.get("name") or data["key"],
            description=data.get("description"),
            kind=data.get("kind"),
            creation_date=data.get("creationDate"),
            tags=list(data.get("tags") or []),
            temporary=bool(data.get("temporary", False)),
            archived=bool(data.get("archived", False)),
            deprecated=bool(data.get("deprecated", False)),
            include_in_snippet=bool(data.get("includeInSnippet", False)),
            client_side_availability=data.get("clientSideAvailability"),
            defaults=data.get("defaults"),
            custom_properties=dict(data.get("customProperties") or {}),
            maintainer=data.get("_maintainer") or data.get("maintainer"),
            variations=[Variation.from_dict(v) for v in data.get("variations") or []],
            environments={
                env_key: EnvironmentConfig.from_dict(env_key, env_data)
                for env_key, env_data in environments.items()
            },
        )

    def environment(self, environment_key: str) -> EnvironmentConfig | None:
        return self.environments.get(environment_key)

    def environment_keys(self) -> list[str]:
        return list(self.environments)

    def to_details(self) -> dict[str, Any]:
        """読み取り専用の正規化ビューを返す。"""
        return {
            "key": self.key,
            "name": self.name,
            "description": self.description,
            "kind": self.kind,
            "creationDate": format_timestamp(self.creation_date),
            "tags": self.tags,
            "temporary": self.temporary,
            "archived": self.archived,
            "deprecated": self.deprecated,
            "includeInSnippet": self.include_in_snippet,
            "clientSideAvailability": self.client_side_availability,
            "variations": [v.to_dict() for v in self.variations],
            "defaults": self.defaults,
            "customProperties": self.custom_properties,
            "maintainer": self.maintainer,
            "environments": {k: env.to_details() for k, env in self.environments.items()},
        }

    def to_summary(self) -> dict[str, Any]:
        """一覧表示用の要約を返す。"""
        return {
            "key": self.key,
            "name": self.name,
            "kind": self.kind,
            "description": self.description,
            "tags": self.tags,
            "temporary": self.temporary,
            "variations": [v.to_dict() for v in self.variations],
        }


@dataclass
class EnvironmentInfo:
    """プロジェクトの環境情報。"""

    key: str
    name: str
    color: str | None = None
    default: bool = False
    secure: bool = False
    mobile_sdk_key: str | None = None
    client_side_id: str | None = None
    api_key: str | None = None
    tags: list[str] = field(default_factory=list)
    require_comments: bool = False
    confirm_changes: bool = False
    approval_settings: dict[str, Any] | None = None
    critical: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_environment_id: str = "") -> EnvironmentInfo:
        return cls(
            key=data["key"],
            name=data.get("name", data["key"]),
            color=data.get("color"),
            default=(
                (bool(default_environment_id) and data.get("_id") == default_environment_id)
                or data["key"] == "production"
            ),
            secure=bool(data.get("secureMode", False)),
            mobile_sdk_key=data.get("mobileKey"),
            client_side_id=data.get("clientSideId"),
            api_key=data.get("apiKey"),
            tags=list(data.get("tags") or []),
            require_comments=bool(data.get("requireComments", False)),
            confirm_changes=bool(data.get("confirmChanges", False)),
            approval_settings=data.get("approvalSettings"),
            critical=bool(data.get("critical", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "color": self.color,
            "default": self.default,
            "secure": self.secure,
            "mobileSdkKey": self.mobile_sdk_key,
            "clientSideId": self.client_side_id,
            "apiKey": self.api_key,
            "tags": self.tags,
            "requireComments": self.require_comments,
            "confirmChanges": self.confirm_changes,
            "approvalSettings": self.approval_settings,
            "critical": self.critical,
        }


@dataclass
class EnvironmentStatus:
    """環境ごとのフラグ利用状況。"""

    name: str
    last_requested: str | None = None
    default: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnvironmentStatus:
        return cls(
            name=data.get("name", "unknown"),
            last_requested=data.get("lastRequested"),
            default=data.get("default"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "lastRequested": self.last_requested,
            "default": self.default,
        }


@dataclass
class FlagStatus:
    """フラグのステータス一覧。"""

    key: str
    environments: dict[str, EnvironmentStatus] = field(default_factory=dict)

    @classmethod
    def from_dict(
        cls,
        flag_key: str,
        data: dict[str, Any],
        environment_key: str | None = None,
    ) -> FlagStatus:
        if "environments" in data:
            environments = {
                k: EnvironmentStatus.from_dict(v) for k, v in (data["environments"] or {}).items()
            }
        elif environment_key is not None:
            # 単一環境のレスポンスはステータス本体のみ
            environments = {environment_key: EnvironmentStatus.from_dict(data)}
        else:
            environments = {}
        return cls(key=data.get("key", flag_key), environments=environments)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "environments": {k: v.to_dict() for k, v in self.environments.items()},
        }
