"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments  (the CLI applies its flags on top afterwards)
  2. Environment variables  (MONITORBOT__STATE__DIR=/var/lib/monitorbot)
  3. monitorbot.yaml        (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from monitorbot import __version__

_DEFAULT_STATE_DIR = str(Path.home() / ".monitorbot")
_DEFAULT_USER_AGENT = f"monitorbot/{__version__}"

ColorChoice = Literal["auto", "always", "never"]


def _find_config_file() -> str | None:
    """Return the path of the first monitorbot.yaml found, or None."""
    candidates = [
        Path("monitorbot.yaml"),
        Path(platformdirs.user_config_dir("monitorbot")) / "monitorbot.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class FetcherSettings(BaseModel):
    user_agent: str = _DEFAULT_USER_AGENT
    timeout_seconds: float = 30.0
    max_redirects: int = 10


class StateSettings(BaseModel):
    dir: str = _DEFAULT_STATE_DIR
    # Treat undeserializable cache entries as a cache miss instead of failing.
    discard_corrupt_entries: bool = False


class OutputSettings(BaseModel):
    color: ColorChoice = "auto"
    no_diff: bool = False


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    format: Literal["json", "text"] = "text"


class RunSettings(BaseModel):
    isolate_failures: bool = False


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: MONITORBOT__OUTPUT__COLOR=never
        env_prefix="MONITORBOT__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    fetcher: FetcherSettings = FetcherSettings()
    state: StateSettings = StateSettings()
    output: OutputSettings = OutputSettings()
    logging: LoggingSettings = LoggingSettings()
    run: RunSettings = RunSettings()
    urls: list[str] = []

    @property
    def state_dir(self) -> Path:
        return Path(self.state.dir).expanduser()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
