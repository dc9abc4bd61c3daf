import re

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

# libpq-only params that asyncpg rejects when passed through the URL
_STRIP_PARAMS = {
    "sslmode", "channel_binding", "options", "application_name",
    "target_session_attrs", "connect_timeout", "fallback_application_name",
    "keepalives", "keepalives_idle", "keepalives_interval", "keepalives_count",
    "tcp_user_timeout", "gssencmode", "krbsrvname", "passfile",
}


def to_asyncpg(conn_str: str) -> str:
    """Point a Postgres URL at the asyncpg driver and drop params asyncpg rejects.

    Works on the raw string: urlparse mishandles "+driver" schemes.
    """
    for old, new in [
        ("postgresql+psycopg2://", "postgresql+asyncpg://"),
        ("postgresql+psycopg://",  "postgresql+asyncpg://"),
        ("postgres://",            "postgresql+asyncpg://"),
        ("postgresql://",          "postgresql+asyncpg://"),
    ]:
        if conn_str.startswith(old):
            conn_str = new + conn_str[len(old):]
            break

    for param in _STRIP_PARAMS:
        conn_str = re.sub(
            rf"([?&]){re.escape(param)}=[^&]*(&?)",
            lambda m: (m.group(1) if m.group(2) else ""),
            conn_str,
        )

    # a stripped last param can leave a dangling separator
    return re.sub(r"[?&]$", "", conn_str)


class Settings(BaseSettings):
    PROJECT_NAME: str = "SQL Editor"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:4200"]

    # Database: DATABASE_URL wins over the discrete fields when set
    DATABASE_URL: str = ""
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_USER: str = "postgres"
    DATABASE_PASSWORD: str = "postgres"
    DATABASE_NAME: str = "postgres"
    DATABASE_SCHEMA: str = "public"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10

    # Query execution limits
    QUERY_DEFAULT_TIMEOUT_MS: int = 30_000
    QUERY_MAX_ROWS: int = 10_000
    QUERY_MAX_CSV_ROWS: int = 100_000
    QUERY_MAX_PAGE_SIZE: int = 1_000
    QUERY_RETENTION_SECONDS: float = 300

    # CSV exports land here, relative to the working directory
    EXPORT_DIR: str = "temp"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return to_asyncpg(self.DATABASE_URL)
        return URL.create(
            "postgresql+asyncpg",
            username=self.DATABASE_USER,
            password=self.DATABASE_PASSWORD,
            host=self.DATABASE_HOST,
            port=self.DATABASE_PORT,
            database=self.DATABASE_NAME,
        ).render_as_string(hide_password=False)


settings = Settings()
