"""タスク/イシュー管理のカスタム例外定義

API 境界では ValidationError → 400, NotFoundError → 404,
StorageError → 500 に対応付けられる。
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional


class TrackerError(Exception):
    """Tracker 基底例外"""

    pass


class ValidationError(TrackerError):
    """スキーマ違反。違反したフィールドの一覧を保持する"""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors: List[Dict[str, Any]] = list(errors or [])

    @property
    def fields(self) -> List[str]:
        return [error["field"] for error in self.errors]

    @classmethod
    def from_pydantic(cls, message: str, exc: Any) -> "ValidationError":
        """pydantic.ValidationError を field/message の一覧に変換する"""
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]) or "<root>",
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        return cls(message, errors)


class NotFoundError(TrackerError):
    """対象のタスク/イシューが存在しない"""

    def __init__(self, kind: str, identifier: Any) -> None:
        super().__init__(f"{kind} {identifier} not found")
        self.kind = kind
        self.identifier = identifier


class StorageError(TrackerError):
    """ファイル I/O の失敗"""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class TransportError(TrackerError):
    """WebSocket の送受信・接続エラー"""

    pass
