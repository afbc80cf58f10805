"""Unified configuration loaded from .blogpipe.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

from blogpipe.storage import DEFAULT_PATTERNS

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".blogpipe.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG = Path.home() / ".config" / "blogpipe" / "config.toml"


class ContentConfig(BaseModel):
    """[content] section."""

    root: str = "./content"
    patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_PATTERNS))


class OutputConfig(BaseModel):
    """[output] section."""

    directory: str = "./public"
    include_drafts: bool = False


class RenderConfig(BaseModel):
    """[render] section."""

    html: bool = True


class PipelineConfig(BaseModel):
    """[pipeline] section."""

    workers: int = Field(default=1, ge=1)


class BlogpipeConfig(BaseModel):
    """Top-level configuration model."""

    content: ContentConfig = Field(default_factory=ContentConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)


def load_config(path: str | Path | None = None) -> BlogpipeConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .blogpipe.toml in CWD
    3. ~/.config/blogpipe/config.toml

    Then overlay environment variables.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG.exists():
            data = _load_toml(GLOBAL_CONFIG)
            logger.info("Loaded config from %s", GLOBAL_CONFIG)

    config = BlogpipeConfig.model_validate(data) if data else BlogpipeConfig()
    return _apply_env_vars(config)


def merge_cli_overrides(config: BlogpipeConfig, **cli_kwargs: object) -> BlogpipeConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was provided (not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "content_root": ("content", "root"),
        "output_directory": ("output", "directory"),
        "include_drafts": ("output", "include_drafts"),
        "workers": ("pipeline", "workers"),
        "html": ("render", "html"),
    }

    for key, value in cli_kwargs.items():
        if value is None or key not in mapping:
            continue
        section, field = mapping[key]
        data[section][field] = value

    return BlogpipeConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: BlogpipeConfig) -> BlogpipeConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "BLOGPIPE_CONTENT_ROOT": ("content", "root"),
        "BLOGPIPE_OUTPUT_DIR": ("output", "directory"),
    }
    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    drafts_raw = os.environ.get("BLOGPIPE_INCLUDE_DRAFTS")
    if drafts_raw is not None:
        data["output"]["include_drafts"] = drafts_raw.lower() in ("true", "1", "yes")

    workers_raw = os.environ.get("BLOGPIPE_WORKERS")
    if workers_raw is not None:
        try:
            data["pipeline"]["workers"] = int(workers_raw)
        except ValueError:
            logger.warning("Ignoring non-integer BLOGPIPE_WORKERS=%r", workers_raw)

    return BlogpipeConfig.model_validate(data)
