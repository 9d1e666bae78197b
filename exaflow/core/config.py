import json
import logging
import os
from pathlib import Path
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    debug: bool = False

    # Sandbox
    allowed_roots: Annotated[list[Path], NoDecode] = Field(default_factory=lambda: [Path.cwd()])
    max_file_size: int = Field(default=10 * 1024 * 1024, gt=0)

    model_config = {
        "env_file": ".env",
        "env_prefix": "EXAFLOW_",
        "extra": "ignore",
    }

    @field_validator("allowed_roots", mode="before")
    @classmethod
    def _split_roots(cls, value: Any) -> Any:
        """Accept a JSON array or an os.pathsep-separated list from the environment."""
        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.startswith("["):
            return json.loads(text)
        return [item.strip() for item in text.split(os.pathsep) if item.strip()]

    @field_validator("allowed_roots")
    @classmethod
    def _require_roots(cls, value: list[Path]) -> list[Path]:
        if not value:
            raise ValueError("at least one allowed root is required")
        return value


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s" if settings.debug
        else "%(levelname)-8s %(name)s: %(message)s",
    )
