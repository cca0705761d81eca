"""Client configuration loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from gitcontents.services.platforms import GIT_PLATFORMS


class Settings(BaseSettings):
    """Repository client settings with ``GIT_``-prefixed environment loading."""

    model_config = SettingsConfigDict(
        env_prefix="GIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    api_url: str = GIT_PLATFORMS["github"]
    token: str = ""
    owner: str = ""
    repo: str = ""

    debug: bool = False
    log_level: str = "INFO"

    # Tree listing guards; None leaves traversal unbounded
    tree_max_depth: int | None = None
    tree_concurrency: int | None = None


settings = Settings()
