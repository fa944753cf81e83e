from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from portly.errors import ConfigurationError

DEFAULT_TEMPLATE_PATH = Path(__file__).parent / "templates" / "nginx-template.txt"
DEFAULT_RANGE_SIZE = 600
HIGHEST_PORT = 65535


class Settings(BaseSettings):
    # Application
    app_name: Optional[str] = None
    domain: Optional[str] = None
    port_env_name: str = "PORT"

    # Port range
    port_min: int = Field(3000, ge=1, le=HIGHEST_PORT)
    port_max: Optional[int] = Field(None, ge=1, le=HIGHEST_PORT)
    forced: bool = False
    expand_max: bool = False
    bind_host: str = "0.0.0.0"

    # Files
    state_file: str = ".portly.env"
    template_path: str = str(DEFAULT_TEMPLATE_PATH)
    config_dir: str = "nginx-configs"
    ready_file: str = ".portly.ready"
    template_vars: dict[str, str] = {}

    # Owner check
    supervisor_command: str = "pm2"
    lsof_command: str = "lsof"
    lookup_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_dir: str = "logs"

    @field_validator('app_name', 'domain', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode='after')
    def check_port_range(self):
        if self.port_max is None:
            self.port_max = min(self.port_min + DEFAULT_RANGE_SIZE, HIGHEST_PORT)
        if self.port_min > self.port_max:
            raise ValueError(
                f"Invalid range. PORT_MIN ({self.port_min}) must not exceed PORT_MAX ({self.port_max})"
            )
        return self

    class Config:
        env_file = ".env"
        env_ignore_empty = True
        extra = "ignore"


def load_settings(**overrides) -> Settings:
    """
    Build settings from the environment, the .env file and explicit overrides.

    Raises:
        ConfigurationError: If any value fails validation
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'settings'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from e
