from pathlib import Path
from typing import Optional, Union

from repogen.core.settings import load_config
from repogen.domain.models import GeneratorConfig
from repogen.services.generator import RepositoryGenerator
from repogen.storage.json_cache_store import JsonCacheStore


def create_generator(config: GeneratorConfig) -> RepositoryGenerator:
    cache = JsonCacheStore(config.resolved_cache_dir())
    return RepositoryGenerator(config, cache=cache)


def create_generator_from_file(path: Union[str, Path], use_cache: Optional[bool] = None) -> RepositoryGenerator:
    config = load_config(path)
    if use_cache is not None:
        config = config.model_copy(update={"use_cache": use_cache})
    return create_generator(config)
