"""Filter stack configuration.

Settings come from environment variables prefixed with ``PROXY_FILTERS_``:

- PROXY_FILTERS_LOG_LEVEL=DEBUG
- PROXY_FILTERS_FILTERS_FILE=/etc/proxy/filters.yaml

Filter definition files are YAML or JSON lists of entries such as::

    - filter: proxy_filters.builtin:LinesBodyFilter
      side: response
      match:
        host: "example\\.com$"
        mime: "text/html"
"""
import importlib
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import FilterConfigurationError
from .filters import Filter
from .matching import MATCH_FIELDS
from .stacks import DEFAULT_MIME, FilterStacks
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")


class Settings(BaseSettings):
    """Runtime settings for the filter stacks."""
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    filters_file: Optional[Path] = None
    default_mime: Optional[str] = Field(
        default=DEFAULT_MIME,
        description="Content type glob for response body filters pushed without one"
    )

    model_config = SettingsConfigDict(
        env_prefix="PROXY_FILTERS_",
        case_sensitive=False,
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {v}")
        return level


class FilterDefinition(BaseModel):
    """One filter to instantiate and push onto the stacks."""
    filter: str
    side: Literal["request", "response"] = "response"
    args: List[Any] = Field(default_factory=list)
    kwargs: Dict[str, Any] = Field(default_factory=dict)
    match: Dict[str, Optional[str]] = Field(default_factory=dict)

    @field_validator("filter")
    @classmethod
    def validate_path(cls, v: str) -> str:
        module, _, name = v.replace(":", ".").rpartition(".")
        if not module or not name:
            raise ValueError(f"Expected 'module:Class', got: {v}")
        return v

    @field_validator("match")
    @classmethod
    def validate_match(cls, v: Dict[str, Optional[str]]) -> Dict[str, Optional[str]]:
        unknown = set(v) - set(MATCH_FIELDS)
        if unknown:
            raise ValueError(f"Unknown match parameters: {', '.join(sorted(unknown))}")
        return v

    def load_class(self) -> type:
        if ":" in self.filter:
            module_name, class_name = self.filter.split(":", 1)
        else:
            module_name, _, class_name = self.filter.rpartition(".")
        try:
            module = importlib.import_module(module_name)
            cls = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise FilterConfigurationError(f"Cannot load filter {self.filter}: {e}") from e
        if not (isinstance(cls, type) and issubclass(cls, Filter)):
            raise FilterConfigurationError(f"{self.filter} is not a filter class")
        return cls

    def create(self) -> Filter:
        cls = self.load_class()
        try:
            return cls(*self.args, **self.kwargs)
        except TypeError as e:
            raise FilterConfigurationError(f"Cannot create {self.filter}: {e}") from e


def load_filter_definitions(path: Union[str, Path]) -> List[FilterDefinition]:
    """Read and validate a YAML or JSON filter definition file."""
    path = Path(path)
    try:
        with open(path, 'r') as f:
            if path.suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(f) or []
            else:
                data = json.load(f) or []
    except FileNotFoundError as e:
        raise FilterConfigurationError("File not found", source=str(path)) from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise FilterConfigurationError(f"Cannot parse file: {e}", source=str(path)) from e

    if not isinstance(data, list):
        raise FilterConfigurationError("Expected a list of filter definitions", source=str(path))

    try:
        return [FilterDefinition.model_validate(item) for item in data]
    except ValidationError as e:
        raise FilterConfigurationError(f"Invalid filter definition: {e}", source=str(path)) from e


def install_filters(stacks: FilterStacks, path: Union[str, Path]) -> int:
    """Push every filter defined in ``path`` onto ``stacks``.

    Returns:
        The number of filters installed
    """
    definitions = load_filter_definitions(path)
    for definition in definitions:
        filter_obj = definition.create()
        stacks.push_filter(**{definition.side: [filter_obj]}, **definition.match)
    logger.info(f"Installed {len(definitions)} filters from {path}")
    return len(definitions)


def create_stacks(settings: Optional[Settings] = None) -> FilterStacks:
    """Build filter stacks from settings, loading the filters file if set."""
    settings = settings or Settings()
    stacks = FilterStacks(default_mime=settings.default_mime)
    if settings.filters_file is not None:
        install_filters(stacks, settings.filters_file)
    return stacks


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """Set up logging as described by the settings."""
    settings = settings or Settings()
    return setup_logging(settings.log_level, settings.log_file)
