"""Configuration loading and management."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from gpt_exporter.markdown.walker import DEFAULT_TOOL_CALL_KEYS

DEFAULT_SOURCE_BASE_URL = "https://chatgpt.com"
SUPPORTED_FORMATS = ("markdown", "json")


@dataclass
class ExportConfig:
    output_path: Path = field(default_factory=lambda: Path.home() / "gpt-exporter" / "exports")
    state_db: Path = field(default_factory=lambda: Path.home() / "gpt-exporter" / "state" / "exports.db")
    zip_threshold: int = 3  # bundle into a ZIP when more files than this
    formats: list[str] = field(default_factory=lambda: ["markdown"])


@dataclass
class MarkdownConfig:
    source_base_url: str = DEFAULT_SOURCE_BASE_URL
    tool_call_keys: frozenset[str] = DEFAULT_TOOL_CALL_KEYS


@dataclass
class Config:
    export: ExportConfig = field(default_factory=ExportConfig)
    markdown: MarkdownConfig = field(default_factory=MarkdownConfig)
    log_dir: Path = field(default_factory=lambda: Path.home() / "gpt-exporter" / "logs")


def expand_env_var(value: str) -> str:
    """Expand environment variables in string (e.g. ${VAR})."""
    if value.startswith("${") and value.endswith("}"):
        env_var = value[2:-1]
        return os.environ.get(env_var, value)
    return value


def expand_path(path_str: str) -> Path:
    """Expand ~ and environment variables in path."""
    return Path(os.path.expandvars(os.path.expanduser(path_str)))


def _parse_formats(raw: object) -> list[str]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        return ["markdown"]
    formats = [str(f).strip().lower() for f in raw]
    unknown = set(formats) - set(SUPPORTED_FORMATS)
    if unknown:
        raise ValueError(f"Unsupported export formats: {sorted(unknown)}")
    return formats


def _parse_tool_call_keys(raw: object) -> frozenset[str]:
    if raw is None:
        return DEFAULT_TOOL_CALL_KEYS
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise ValueError(f"markdown.tool_call_keys must be a list, got {type(raw).__name__}")
    return frozenset(str(k) for k in raw)


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from YAML file."""
    if config_path is None:
        # Look for config in standard locations
        search_paths = [
            Path.cwd() / "config.yaml",
            Path.home() / ".config" / "gpt-exporter" / "config.yaml",
            Path("/etc/gpt-exporter/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = path
                break

    if config_path is None or not config_path.exists():
        return Config()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    # Parse export config
    export_data = data.get("export", {}) or {}
    export = ExportConfig(
        output_path=expand_path(export_data.get("output_path", "~/gpt-exporter/exports")),
        state_db=expand_path(export_data.get("state_db", "~/gpt-exporter/state/exports.db")),
        zip_threshold=int(export_data.get("zip_threshold", 3)),
        formats=_parse_formats(export_data.get("formats", ["markdown"])),
    )

    # Parse markdown config
    md_data = data.get("markdown", {}) or {}
    markdown = MarkdownConfig(
        source_base_url=expand_env_var(
            md_data.get("source_base_url", DEFAULT_SOURCE_BASE_URL)
        ).rstrip("/"),
        tool_call_keys=_parse_tool_call_keys(md_data.get("tool_call_keys")),
    )

    log_dir = expand_path(data.get("log_dir", "~/gpt-exporter/logs"))

    return Config(export=export, markdown=markdown, log_dir=log_dir)
