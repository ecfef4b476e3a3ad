"""YAML configuration loading and validation.

Request start times are written as local wall-clock times ("2026-11-03T07:30")
and are pinned to the config's ``timezone`` on load.
"""

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import ValidationError

from rsvpwatch.errors import ConfigError
from rsvpwatch.models import ClassRequest, RsvpConfig


def load_config(path: str | Path) -> RsvpConfig:
    """Load and validate an rsvpwatch config from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a YAML mapping, got {type(data).__name__}")

    try:
        config = RsvpConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config: {e}") from e

    try:
        tz = ZoneInfo(config.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigError(f"Unknown timezone: {config.timezone}") from e

    return config.model_copy(
        update={"requests": [_localize(r, tz) for r in config.requests]}
    )


def _localize(request: ClassRequest, tz: ZoneInfo) -> ClassRequest:
    if request.start.tzinfo is not None:
        return request
    return request.model_copy(update={"start": request.start.replace(tzinfo=tz)})
