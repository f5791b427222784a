"""
Order Service — 設定

各サービスと同じく環境変数から接続先を読み込む。
テストでは Settings を直接組み立てて create_app() に渡す。
"""

import os
from decimal import Decimal

from pydantic import BaseModel


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    database_url: str
    redis_url: str = "redis://localhost:6379"
    audit_channel: str = "order_audit"
    audit_to_database: bool = True
    total_tolerance: Decimal = Decimal("0.01")
    log_level: str = "INFO"
    sql_echo: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """環境変数から設定を組み立てる。DATABASE_URL は必須。"""
        return cls(
            database_url=os.environ["DATABASE_URL"],
            redis_url=os.environ.get("REDIS_URL", "redis://localhost:6379"),
            audit_channel=os.environ.get("AUDIT_CHANNEL", "order_audit"),
            audit_to_database=_flag(os.environ.get("AUDIT_TO_DATABASE", "true")),
            total_tolerance=Decimal(os.environ.get("ORDER_TOTAL_TOLERANCE", "0.01")),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            sql_echo=_flag(os.environ.get("SQL_ECHO", "false")),
        )
