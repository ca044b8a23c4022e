"""Configuration dataclasses and their JSON loader."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing_extensions import *

DIAGRAM_MODES = ("ask", "always", "never")


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    filepath: Optional[Path] = None


@dataclass(frozen=True)
class DiagramConfig:
    """Per-step diagram export."""

    mode: Literal["ask", "always", "never"] = "ask"
    output_dir: Path = Path("dot")
    render_format: Optional[str] = None

    def __post_init__(self):
        if self.mode not in DIAGRAM_MODES:
            raise ValueError(
                f"Invalid diagram mode: {self.mode!r}. Must be one of {', '.join(DIAGRAM_MODES)}."
            )
        object.__setattr__(self, "output_dir", Path(self.output_dir))


@dataclass(frozen=True)
class Config:
    lambda_marker: str = "/"
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    diagrams: DiagramConfig = field(default_factory=DiagramConfig)


def _load_raw_config(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found at {config_path}")

    if config_path.suffix.lower() != ".json":
        raise ValueError(f"Unsupported config format: {config_path.suffix}")

    with config_path.open("r", encoding="utf-8") as stream:
        raw = json.load(stream)

    if not isinstance(raw, dict):
        raise ValueError("Config file must contain a JSON object")
    return raw


def load_config(config_path: Union[Path, str]) -> Config:
    """Load a JSON configuration file into a Config."""

    config_path = Path(config_path)
    raw = _load_raw_config(config_path)

    logging_raw = dict(raw.get("logging", {}))
    log_path = logging_raw.get("filepath")
    if log_path:
        logging_raw["filepath"] = (config_path.parent / log_path).resolve()

    diagrams_raw = dict(raw.get("diagrams", {}))
    output_dir = diagrams_raw.get("output_dir")
    if output_dir:
        diagrams_raw["output_dir"] = config_path.parent / output_dir

    try:
        return Config(
            lambda_marker=raw.get("lambda_marker", "/"),
            logging=LoggingConfig(**logging_raw),
            diagrams=DiagramConfig(**diagrams_raw),
        )
    except TypeError as exc:
        raise ValueError(f"Invalid configuration in {config_path}: {exc}") from exc
