"""ldflags の例外型定義"""

from __future__ import annotations


class FlagsError(Exception):
    """ldflags のエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FlagsErrorCodes:
    """FlagsError のエラーコード定数。"""

    VALIDATION: str = "VALIDATION_ERROR"
    INSUFFICIENT_VARIATIONS: str = "INSUFFICIENT_VARIATIONS"
    NOT_FOUND: str = "NOT_FOUND"
    CONNECTION_ERROR: str = "CONNECTION_ERROR"
    HTTP_ERROR: str = "HTTP_ERROR"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    CONFIG_VALIDATION: str = "CONFIG_VALIDATION_ERROR"
    MISSING_API_KEY: str = "MISSING_API_KEY"


class ValidationError(FlagsError):
    """入力値の検証エラー。API 呼び出し前に発生する。"""

    def __init__(
        self,
        field: str,
        message: str,
        *,
        code: str = FlagsErrorCodes.VALIDATION,
    ) -> None:
        super().__init__(code, message)
        self.field = field


class NotFoundError(FlagsError):
    """フラグまたは環境が存在しない。"""

    def __init__(
        self,
        resource: str,
        key: str,
        message: str,
        available: list[str] | None = None,
    ) -> None:
        super().__init__(FlagsErrorCodes.NOT_FOUND, message)
        self.resource = resource
        self.key = key
        self.available = list(available or [])


class ServiceConnectionError(FlagsError):
    """リモートサービスへの接続失敗。リトライはしない。"""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(FlagsErrorCodes.CONNECTION_ERROR, message, cause)


class ServiceError(FlagsError):
    """リモートサービスが失敗ステータスを返した。"""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(FlagsErrorCodes.HTTP_ERROR, message)
        self.status_code = status_code


class ConfigError(FlagsError):
    """設定の読み込み・検証エラー。"""
