import os
from decimal import Decimal, InvalidOperation
from typing import List

class Settings:
    def _split_csv(self, raw: str, *, default: List[str]) -> List[str]:
        parts = [p.strip() for p in (raw or "").split(",")]
        return [p for p in parts if p] or default

    def _decimal(self, raw: str, *, default: str) -> Decimal:
        try:
            return Decimal((raw or "").strip() or default)
        except InvalidOperation:
            return Decimal(default)

    def __init__(self) -> None:
        self.env = os.getenv('APP_ENV', 'local')
        self.db_url = os.getenv('DATABASE_URL', 'postgresql://localhost/fabric_erp')
        # Comma-separated list of allowed CORS origins for the warehouse web app.
        self.cors_origins = self._split_csv(
            os.getenv("CORS_ORIGINS", "").strip(),
            default=["http://localhost:3000", "http://127.0.0.1:3000"],
        )
        self.api_version = os.getenv("APP_VERSION", "0.1.0").strip() or "0.1.0"
        # Single flat GST rate applied when an order does not carry its own.
        self.default_gst_rate = self._decimal(os.getenv("DEFAULT_GST_RATE", ""), default="10.00")

settings = Settings()
