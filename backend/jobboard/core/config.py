# jobboard/core/config.py
import os
from urllib.parse import quote_plus

from dotenv import load_dotenv


def str_to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def merge_unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in items:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


class Settings:
    def __init__(self) -> None:
        self.ENV = os.getenv("ENV", "dev").strip().lower()  # dev | prod
        if self.ENV != "prod":
            # Load .env only for non-prod so prod can't be accidentally influenced by local files.
            load_dotenv()

        # ----------------------------
        # Database
        # ----------------------------
        # DATABASE_URL wins when set (local sqlite, tests, one-off scripts).
        self.DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
        self.DB_HOST = os.getenv("DB_HOST", "")
        self.DB_PORT = os.getenv("DB_PORT", "5432")
        self.DB_NAME = os.getenv("DB_NAME", "")
        self.DB_APP_USER = os.getenv("DB_APP_USER", "")
        self.DB_APP_PASSWORD = os.getenv("DB_APP_PASSWORD", "")
        self.DB_MIGRATOR_USER = os.getenv("DB_MIGRATOR_USER", "")
        self.DB_MIGRATOR_PASSWORD = os.getenv("DB_MIGRATOR_PASSWORD", "")
        self.DB_SSLMODE = os.getenv("DB_SSLMODE", "require").strip().lower()

        # ----------------------------
        # CORS
        # ----------------------------
        dev_defaults = [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]

        cors_from_env = parse_csv(os.getenv("CORS_ORIGINS"))
        if self.ENV == "prod":
            self.CORS_ORIGINS = merge_unique(cors_from_env)
        else:
            self.CORS_ORIGINS = merge_unique(cors_from_env + dev_defaults)

        # ----------------------------
        # Auth / JWT (tokens are issued by the identity provider)
        # ----------------------------
        self.JWT_SECRET = os.getenv("JWT_SECRET", "")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

        # ----------------------------
        # Notifications / background work
        # ----------------------------
        self.NOTIFICATIONS_ENABLED = str_to_bool(os.getenv("NOTIFICATIONS_ENABLED"), default=True)
        # Empty broker URL = deliver notifications inline after the primary commit.
        self.CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "").strip()
        self.JOB_EXPIRY_SWEEP_SECONDS = int(os.getenv("JOB_EXPIRY_SWEEP_SECONDS", "3600"))
        self.APPLICATION_COUNT_RECONCILE_SECONDS = int(
            os.getenv("APPLICATION_COUNT_RECONCILE_SECONDS", str(24 * 3600))
        )
        self.SUBSCRIPTION_RENEWAL_SWEEP_SECONDS = int(os.getenv("SUBSCRIPTION_RENEWAL_SWEEP_SECONDS", "3600"))

        # ----------------------------
        # Subscription quotas
        # ----------------------------
        # Used when the free plan has to be provisioned on the fly.
        self.FREE_PLAN_NAME = os.getenv("FREE_PLAN_NAME", "Free Plan")
        self.FREE_PLAN_MAX_JOBS = int(os.getenv("FREE_PLAN_MAX_JOBS", "1"))
        self.FREE_PLAN_MAX_APPLICATIONS = int(os.getenv("FREE_PLAN_MAX_APPLICATIONS", "10"))

        # ----------------------------
        # Application review
        # ----------------------------
        # Repeat views by the same reviewer inside this window are not counted.
        self.APPLICATION_VIEW_DEDUP_MINUTES = int(os.getenv("APPLICATION_VIEW_DEDUP_MINUTES", "30"))

        self._validate_prod()

    def _validate_prod(self) -> None:
        if self.ENV != "prod":
            return

        missing: list[str] = []

        if not self.JWT_SECRET:
            missing.append("JWT_SECRET")
        if not self.DATABASE_URL:
            if not self.DB_HOST:
                missing.append("DB_HOST")
            if not self.DB_NAME:
                missing.append("DB_NAME")
            if not self.DB_APP_USER:
                missing.append("DB_APP_USER")
            if not self.DB_APP_PASSWORD:
                missing.append("DB_APP_PASSWORD")
            if self.DB_SSLMODE != "require":
                raise RuntimeError("DB_SSLMODE must be 'require' in prod")

        if not self.CORS_ORIGINS:
            missing.append("CORS_ORIGINS")

        cors_joined = ",".join(self.CORS_ORIGINS)
        if "localhost" in cors_joined or "127.0.0.1" in cors_joined:
            raise RuntimeError("CORS_ORIGINS contains localhost/dev origins in prod")

        if self.FREE_PLAN_MAX_JOBS < 0 or self.FREE_PLAN_MAX_APPLICATIONS < 0:
            raise RuntimeError("FREE_PLAN_MAX_JOBS / FREE_PLAN_MAX_APPLICATIONS must be >= 0")

        if missing:
            raise RuntimeError(f"Missing required prod env vars: {', '.join(missing)}")

    def _build_database_url(self, user: str, password: str) -> str:
        encoded_password = quote_plus(password)
        return (
            f"postgresql+psycopg2://{user}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            f"?sslmode={self.DB_SSLMODE}"
        )

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if not self.DB_HOST:
            # Local dev without Postgres.
            return "sqlite:///./jobboard.db"
        return self._build_database_url(self.DB_APP_USER, self.DB_APP_PASSWORD)

    @property
    def migrations_database_url(self) -> str:
        if self.DATABASE_URL or not self.DB_HOST:
            return self.database_url
        return self._build_database_url(self.DB_MIGRATOR_USER, self.DB_MIGRATOR_PASSWORD)


settings = Settings()


def require_jwt_secret() -> None:
    # Auth is always on -> JWT_SECRET must always exist
    if not settings.JWT_SECRET or not settings.JWT_SECRET.strip():
        raise RuntimeError("JWT_SECRET must be set (auth is required).")
