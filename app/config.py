import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./buffer_sync.db")
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Export cursor limits
    default_customer_limit: int = int(os.getenv("SYNC_DEFAULT_CUSTOMER_LIMIT", "50"))
    default_invoice_limit: int = int(os.getenv("SYNC_DEFAULT_INVOICE_LIMIT", "100"))
    max_limit: int = int(os.getenv("SYNC_MAX_LIMIT", "500"))

    # "row_per_due_date" (anonymes_invoices) or "normalized" (buffer_invoices + buffer_due_dates)
    invoice_schema: str = os.getenv("INVOICE_SCHEMA", "row_per_due_date")

    # Stored procedure that repopulates the buffer tables from Sage
    refresh_procedure: str = os.getenv("SYNC_REFRESH_PROCEDURE", "EXEC sp_sync_all_to_buffer")

    # Include raw driver messages in error envelopes
    expose_error_details: bool = _env_bool("SYNC_EXPOSE_ERROR_DETAILS", "true")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "json")

    # Tracing (OpenTelemetry SDK comes with the "otel" extra)
    otel_enabled: bool = _env_bool("OTEL_ENABLED", "false")
    otel_service_name: str = os.getenv("OTEL_SERVICE_NAME", "sage-buffer-sync")
    otel_exporter_endpoint: str | None = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")


settings = Settings()
