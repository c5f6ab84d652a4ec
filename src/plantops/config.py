"""Configuration loading from environment variables and plantops.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_DATA_DIR = Path.home() / ".plantops" / "data"
_CONFIG_FILENAME = "plantops.toml"


@dataclass
class EngineConfig:
    """Configuration for the reasoning engine."""

    name: str = "gemini"
    fallback: str | None = None
    analysis_model: str | None = None
    fast_model: str | None = None
    api_key: str | None = None
    thinking_budget: int = 16384
    grounding: bool = True
    timeout: int = 300


@dataclass
class StoreConfig:
    """Local persistence configuration."""

    data_dir: Path = _DEFAULT_DATA_DIR
    key: str = "plantops_data_v1"
    keep_versions: int = 10


@dataclass
class ContextConfig:
    """Context assembly and memory knobs."""

    history_window: int = 3
    signature_warn_chars: int = 2000


@dataclass
class PlantOpsConfig:
    """Top-level PlantOps configuration."""

    engine: EngineConfig = field(default_factory=EngineConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> PlantOpsConfig:
    """Load configuration from environment variables and optional plantops.toml.

    Priority: environment variables > plantops.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.plantops/
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / ".plantops" / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    engine_data = file_data.get("engine", {})
    store_data = file_data.get("store", {})
    context_data = file_data.get("context", {})

    config = PlantOpsConfig(
        engine=EngineConfig(
            name=os.getenv("PLANTOPS_ENGINE", engine_data.get("name", "gemini")),
            fallback=os.getenv("PLANTOPS_FALLBACK", engine_data.get("fallback")),
            analysis_model=os.getenv(
                "PLANTOPS_ANALYSIS_MODEL", engine_data.get("analysis_model")
            ),
            fast_model=os.getenv("PLANTOPS_FAST_MODEL", engine_data.get("fast_model")),
            api_key=(
                os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or engine_data.get("api_key")
            ),
            thinking_budget=int(engine_data.get("thinking_budget", 16384)),
            grounding=bool(engine_data.get("grounding", True)),
            timeout=int(os.getenv("PLANTOPS_TIMEOUT", engine_data.get("timeout", 300))),
        ),
        store=StoreConfig(
            data_dir=Path(
                os.getenv("PLANTOPS_DATA_DIR", store_data.get("data_dir", str(_DEFAULT_DATA_DIR)))
            ).expanduser(),
            key=store_data.get("key", "plantops_data_v1"),
            keep_versions=int(store_data.get("keep_versions", 10)),
        ),
        context=ContextConfig(
            history_window=int(
                os.getenv("PLANTOPS_HISTORY_WINDOW", context_data.get("history_window", 3))
            ),
            signature_warn_chars=int(context_data.get("signature_warn_chars", 2000)),
        ),
        log_level=os.getenv("PLANTOPS_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
