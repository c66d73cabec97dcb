from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str

    secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_audience: str | None = None
    access_token_expire_minutes: int = 10080

    # Per-user local snapshot of the node graph (mirrors the remote table)
    workspace_dir: str = "workspace"

    run_migrations_on_startup: bool = True
    # Copy legacy folders/tracks rows into the graph for users that have none yet
    migrate_legacy_on_startup: bool = False
    log_level: str = "INFO"

    cors_origins: str = "http://localhost,http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
