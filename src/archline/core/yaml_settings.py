"""YAML configuration source for State.

Files are merged in this order, later ones winning:

    package defaults, user config, ./archline.yaml, --include files

Any file may list other files under `include:`. Those are merged
underneath the including file, later entries over earlier ones.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic_settings import BaseSettings, YamlConfigSettingsSource

from archline.core.log import logger

PROJECT_CONFIG_FILE = "archline.yaml"
DEFAULTS_FILE = Path(__file__).parent.parent / "defaults" / "default.yaml"


def user_config_file() -> Path:
    return Path(user_config_dir("archline", appauthor=False)) / PROJECT_CONFIG_FILE


def cli_includes(argv: list[str]) -> list[str]:
    """Values of every --include option in argv.

    Read before pydantic-settings parses the command line, since the
    YAML has to be loaded first.
    """
    found = []
    for flag, value in zip(argv, argv[1:]):
        if flag == "--include":
            found.append(value)
    found.extend(
        arg.split("=", 1)[1] for arg in argv if arg.startswith("--include=")
    )
    return found


def merge_dicts(base: dict, override: dict) -> dict:
    """Recursively merge override into a copy of base."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_with_includes(path: Path, chain: tuple[Path, ...] = ()) -> dict:
    """Load a YAML file with its include: files merged underneath.

    Relative includes are resolved against the including file.

    Raises:
        ValueError: If a file includes itself, directly or indirectly
        FileNotFoundError: If an included file does not exist
    """
    path = path.resolve()
    if path in chain:
        raise ValueError(f"Circular include: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    includes = data.pop("include", None) or []
    if isinstance(includes, str):
        includes = [includes]

    merged: dict = {}
    for name in includes:
        included = Path(name).expanduser()
        if not included.is_absolute():
            included = path.parent / included
        merged = merge_dicts(
            merged, load_with_includes(included, (*chain, path))
        )
    return merge_dicts(merged, data)


class YamlWithIncludesSettingsSource(YamlConfigSettingsSource):
    """pydantic-settings YAML source that layers defaults, user config
    and --include files around the configured yaml_file."""

    def __init__(self, settings_cls: type[BaseSettings], yaml_file=None):
        files = yaml_file or settings_cls.model_config.get("yaml_file")
        if isinstance(files, (str, os.PathLike)):
            files = [files]
        super().__init__(
            settings_cls, [*(files or []), *cli_includes(sys.argv)]
        )

    def _read_files(self, files, deep_merge: bool = True) -> dict:
        if isinstance(files, (str, os.PathLike)):
            files = [files]
        candidates = [
            DEFAULTS_FILE,
            user_config_file(),
            *(Path(f).expanduser() for f in files or []),
        ]

        result: dict = {}
        for path in candidates:
            if not path.is_file():
                logger.debug(
                    "Configuration file not found (skipping)", file=str(path)
                )
                continue
            with logger.span("Configuration loading", file=str(path)):
                result = merge_dicts(result, load_with_includes(path))
        return result
