"""
Order Service — 監査イベント定義

各操作（成功・失敗とも）の後に1件だけ発行する。
"""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

ORDER_CREATE = "order_create"
ORDER_UPDATE = "order_update"
ORDER_DELETE = "order_delete"


class AuditEvent(BaseModel):
    """注文操作の結果"""
    operation_type: str
    request_payload: dict
    outcome: Literal["success", "failed"]
    failure_reason: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def success(cls, operation_type: str, payload: dict) -> "AuditEvent":
        return cls(operation_type=operation_type, request_payload=payload, outcome="success")

    @classmethod
    def failed(cls, operation_type: str, payload: dict, reason: str) -> "AuditEvent":
        return cls(
            operation_type=operation_type,
            request_payload=payload,
            outcome="failed",
            failure_reason=reason,
        )
