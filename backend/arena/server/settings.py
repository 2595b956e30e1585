"""Arena server configuration via environment variables."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from shared.validators import StringListEnvSettingsSource, parse_origin_list


class ArenaServerSettings(BaseSettings):
    model_config = {"env_prefix": "ARENA_"}

    cors_origins: list[str] = ["http://localhost:3000"]
    grace_seconds: float = Field(default=60.0, gt=0)
    max_sessions: int = Field(default=1000, ge=1)
    results_url: str = Field(min_length=1)
    results_timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    log_dir: str | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_origin_list(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
