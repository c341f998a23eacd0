"""ldflags: LaunchDarkly feature flag command-line client."""

from .builder import build_endpoint_rule, resolve_variation_refs
from .config import Settings
from .exceptions import (
    ConfigError,
    FlagsError,
    FlagsErrorCodes,
    NotFoundError,
    ServiceConnectionError,
    ServiceError,
    ValidationError,
)
from .gateway import FlagGateway
from .http_gateway import HttpFlagGateway
from .memory import InMemoryFlagGateway
from .models import (
    Clause,
    EnvironmentConfig,
    EnvironmentInfo,
    FlagDocument,
    FlagStatus,
    Rollout,
    RolloutWeight,
    Rule,
    Variation,
    VariationId,
    VariationIndex,
)
from .service import AddRuleOutcome, AddRuleRequest, AddRuleService
from .strategies import DocumentPatchStrategy, PatchStrategy, SemanticPatchStrategy

__all__ = [
    "AddRuleOutcome",
    "AddRuleRequest",
    "AddRuleService",
    "Clause",
    "ConfigError",
    "DocumentPatchStrategy",
    "EnvironmentConfig",
    "EnvironmentInfo",
    "FlagDocument",
    "FlagGateway",
    "FlagStatus",
    "FlagsError",
    "FlagsErrorCodes",
    "HttpFlagGateway",
    "InMemoryFlagGateway",
    "NotFoundError",
    "PatchStrategy",
    "Rollout",
    "RolloutWeight",
    "Rule",
    "SemanticPatchStrategy",
    "ServiceConnectionError",
    "ServiceError",
    "Settings",
    "ValidationError",
    "Variation",
    "VariationId",
    "VariationIndex",
    "build_endpoint_rule",
    "resolve_variation_refs",
]
