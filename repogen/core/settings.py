from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from repogen.domain.errors import ConfigError
from repogen.domain.models import GeneratorConfig, SourceKind
from repogen.services.sources.fetcher import determine_source_kind

logger = logging.getLogger(__name__)

OUTPUT_DIR_ENV_VAR = "REPOGEN_OUTPUT_DIR"
CACHE_DIR_ENV_VAR = "REPOGEN_CACHE_DIR"


def _apply_environment(raw: Dict[str, Any], base_dir: Optional[Path]) -> Dict[str, Any]:
    """
    Environment variables override the file; relative directories in the
    file are resolved against the file's own directory.
    """
    data = dict(raw)
    sources = data.get("sources")
    if isinstance(sources, dict):
        # "locator:" with no options in YAML
        data["sources"] = {locator: options or {} for locator, options in sources.items()}

    if base_dir is not None:
        for key in ("output_dir", "cache_dir", "archive_dir", "workspace_dir"):
            value = data.get(key)
            if value:
                path = Path(value).expanduser()
                if not path.is_absolute():
                    path = base_dir / path
                data[key] = path

        if isinstance(data.get("sources"), dict):
            data["sources"] = {
                _resolve_locator(locator, base_dir): options for locator, options in data["sources"].items()
            }

    env_output = os.environ.get(OUTPUT_DIR_ENV_VAR)
    if env_output:
        data["output_dir"] = Path(env_output).expanduser()
    env_cache = os.environ.get(CACHE_DIR_ENV_VAR)
    if env_cache:
        data["cache_dir"] = Path(env_cache).expanduser()
    return data


def _resolve_locator(locator: str, base_dir: Path) -> str:
    if determine_source_kind(locator) != SourceKind.PATH:
        return locator
    path = Path(locator).expanduser()
    if path.is_absolute():
        return locator
    return str(base_dir / path)


def build_config(raw: Dict[str, Any], base_dir: Optional[Path] = None) -> GeneratorConfig:
    """Validate a configuration mapping, applying environment overrides."""
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(raw).__name__}")
    data = _apply_environment(raw, base_dir)
    try:
        return GeneratorConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(path: Union[str, Path]) -> GeneratorConfig:
    """
    Load a YAML (or JSON) configuration file.

    Example::

        output_dir: build/repository
        proxy_packages: true
        auth_tokens:
          github.com: ghp_xxx
        sources:
          https://github.com/acme/widgets.git:
            include_dev_versions: true
          ../local-package: {}
    """
    path = Path(path).expanduser()
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    config = build_config(raw or {}, base_dir=path.resolve().parent)
    logger.debug(f"Loaded configuration from {path} ({len(config.sources)} sources)")
    return config
