"""LaunchDarkly REST API ゲートウェイ実装"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from .config import Settings
from .exceptions import (
    ConfigError,
    FlagsErrorCodes,
    ServiceConnectionError,
    ServiceError,
)
from .gateway import SEMANTIC_PATCH_CONTENT_TYPE, FlagGateway
from .models import EnvironmentInfo, FlagDocument, FlagStatus

logger = structlog.get_logger(__name__)


class HttpFlagGateway(FlagGateway):
    """httpx を使った LaunchDarkly REST API ゲートウェイ。"""

    def __init__(self, settings: Settings) -> None:
        if not settings.api_key:
            raise ConfigError(
                code=FlagsErrorCodes.MISSING_API_KEY,
                message="LaunchDarkly API key is required. Configure it in the configuration file.",
            )
        self._settings = settings
        self._headers: dict[str, str] = {
            "Authorization": settings.api_key,
            "Content-Type": "application/json",
        }

    def _make_client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self._settings.api_url,
            headers=self._headers,
            timeout=self._settings.timeout_seconds,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        logger.debug("api request", method=method, path=path)
        try:
            with self._make_client() as client:
                resp = client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ServiceConnectionError(f"Connection error: {e}", cause=e) from e
        logger.debug("api response", method=method, path=path, status=resp.status_code)
        return resp

    def _handle_error(self, resp: httpx.Response, context: str) -> None:
        if resp.status_code >= 400:
            raise ServiceError(
                status_code=resp.status_code,
                message=f"{context}: HTTP {resp.status_code}: {resp.text}",
            )

    def get_flag(self, project_key: str, flag_key: str) -> FlagDocument | None:
        resp = self._request("GET", f"/flags/{project_key}/{flag_key}")
        if resp.status_code == 404:
            return None
        self._handle_error(resp, "Error fetching flag")
        data: dict[str, Any] = resp.json()
        return FlagDocument.from_dict(data)

    def get_flags(self, project_key: str) -> list[FlagDocument]:
        resp = self._request("GET", f"/flags/{project_key}")
        self._handle_error(resp, f"Error fetching flags for project {project_key}")
        data: dict[str, Any] = resp.json()
        return [FlagDocument.from_dict(item) for item in data.get("items", [])]

    def get_project_environments(self, project_key: str) -> list[EnvironmentInfo]:
        resp = self._request(
            "GET",
            f"/projects/{project_key}",
            params={"expand": "environments"},
        )
        self._handle_error(resp, "Error getting environments")
        data: dict[str, Any] = resp.json()
        items = (data.get("environments") or {}).get("items", [])
        default_id = data.get("defaultEnvironment", "")
        return [EnvironmentInfo.from_dict(env, default_id) for env in items]

    def get_flag_status(
        self,
        project_key: str,
        flag_key: str,
        environment_key: str | None = None,
    ) -> FlagStatus | None:
        path = f"/flags/{project_key}/{flag_key}/environments"
        if environment_key:
            path += f"/{environment_key}"
        resp = self._request("GET", path)
        if resp.status_code == 404:
            return None
        self._handle_error(resp, "Error fetching flag status")
        data: dict[str, Any] = resp.json()
        return FlagStatus.from_dict(flag_key, data, environment_key)

    def apply_semantic_instruction(
        self,
        project_key: str,
        flag_key: str,
        environment_key: str,
        instruction: dict[str, Any],
        comment: str | None = None,
    ) -> bool:
        payload: dict[str, Any] = {
            "environmentKey": environment_key,
            "instructions": [instruction],
        }
        if comment:
            payload["comment"] = comment
        resp = self._request(
            "PATCH",
            f"/flags/{project_key}/{flag_key}",
            json=payload,
            headers={"Content-Type": SEMANTIC_PATCH_CONTENT_TYPE},
        )
        if not resp.is_success:
            logger.warning(
                "semantic patch rejected",
                flag=flag_key,
                status=resp.status_code,
                body=resp.text,
            )
        return resp.is_success

    def apply_document_patch(
        self,
        project_key: str,
        flag_key: str,
        patch_ops: list[dict[str, Any]],
        comment: str | None = None,
    ) -> bool:
        payload: dict[str, Any] = {"patch": patch_ops}
        if comment:
            payload["comment"] = comment
        resp = self._request("PATCH", f"/flags/{project_key}/{flag_key}", json=payload)
        if not resp.is_success:
            logger.warning(
                "json patch rejected",
                flag=flag_key,
                status=resp.status_code,
                body=resp.text,
            )
        return resp.is_success
