"""
Runtime configuration

Built once at startup and passed to everything that needs it. Values come
from defaults, then an optional YAML file, then environment variables, then
explicit overrides (usually command-line flags).
"""

from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from .errors import ConfigError


def _split_listen(listen: str) -> Tuple[str, int]:
    host, sep, port = listen.rpartition(':')
    if not sep:
        host, port = '', listen
    return host.strip('[]') or '0.0.0.0', int(port)


class AppConfig(BaseSettings):
    """
    Process-wide settings

    Environment variable names are the field names in uppercase, e.g.
    ``max_workers`` reads ``MAX_WORKERS``.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='forbid',
        case_sensitive=False,
    )

    listen: str = Field(default=':8080')
    registry: str = Field(default='registry.local', min_length=1)
    registry_scheme: Literal['http', 'https'] = Field(default='https')
    max_workers: int = Field(default=8, ge=1)
    request_deadline: Optional[float] = Field(default=60.0, gt=0)
    tag_limit: int = Field(default=4, ge=0)
    surface_provenance_errors: bool = Field(default=False)

    @field_validator('listen')
    @classmethod
    def _validate_listen(cls, value: str) -> str:
        port = _split_listen(value)[1]
        if not 0 < port < 65536:
            raise ValueError(f"port {port} is out of range")
        return value

    @field_validator('request_deadline', mode='before')
    @classmethod
    def _disable_deadline(cls, value: Any) -> Any:
        # '', '0' and 'none' all switch the deadline off
        if value is None or str(value).strip().lower() in ('', 'none'):
            return None
        try:
            if float(value) == 0:
                return None
        except (TypeError, ValueError):
            pass
        return value

    @classmethod
    def settings_customise_sources(cls, settings_cls, init_settings, env_settings,
                                   dotenv_settings, file_secret_settings):
        return init_settings, env_settings, YamlConfigSettingsSource(settings_cls)

    @property
    def host_port(self) -> Tuple[str, int]:
        """Split ``listen`` into a bindable host and port"""
        return _split_listen(self.listen)


def _check_yaml(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def load_config(path: Optional[str] = None, **overrides: Any) -> AppConfig:
    """
    Load configuration

    Args:
        path: Optional YAML file with AppConfig field names as keys
        **overrides: Explicit values; None entries are ignored

    Returns:
        Validated AppConfig

    Raises:
        ConfigError: The file is unreadable or a value is malformed or out of range
    """
    settings_cls = AppConfig
    if path:
        _check_yaml(Path(path))
        settings_cls = type('AppConfig', (AppConfig,), {
            '__module__': __name__,
            'model_config': SettingsConfigDict(yaml_file=path),
        })

    try:
        return settings_cls(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
