"""Config document I/O helpers (internal).

A config document is the JSON form of a GraphConfig, optionally carrying the
context options that make sense to keep with a layout:

    {
      "panels": [{"lines": [{"data_source": {"field": "duration"}}]}],
      "per_file_panels": true,
      "timestamp_format": "%Y-%m-%d %H:%M:%S%.3f",
      "panel_alignment_mode": "shared-full"
    }
"""

import json
from pathlib import Path
from typing import Optional, Tuple

from pydantic import ConfigDict, ValidationError

from plox.context import SharedGraphContext
from plox.kernel.errors import ConfigurationError
from plox.kernel.spec import GraphConfig, PanelAlignmentMode
from plox._internal.canonical_json import canonical_dumps


class ConfigDocument(GraphConfig):
    per_file_panels: Optional[bool] = None
    timestamp_format: Optional[str] = None
    panel_alignment_mode: Optional[PanelAlignmentMode] = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    def graph_config(self) -> GraphConfig:
        return GraphConfig(panels=self.panels)

    def context(self) -> SharedGraphContext:
        return SharedGraphContext(
            per_file_panels=self.per_file_panels,
            timestamp_format=self.timestamp_format,
            panel_alignment_mode=self.panel_alignment_mode,
        )


def parse_config_document(data: bytes, source: str = "<config>") -> Tuple[GraphConfig, SharedGraphContext]:
    try:
        document = ConfigDocument.model_validate_json(data)
        return document.graph_config(), document.context()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config document '{source}':\n{e}") from e
    except ConfigurationError as e:
        raise ConfigurationError(f"Invalid config document '{source}': {e}") from e


def load_config_document(path: Path) -> Tuple[GraphConfig, SharedGraphContext]:
    """Load a config document from a JSON file path."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ConfigurationError(f"Cannot read config document '{path}': {e}") from e
    return parse_config_document(data, str(path))


def dump_config_document(config: GraphConfig, context: Optional[SharedGraphContext] = None) -> str:
    document = config.model_dump(mode="json", exclude_none=True)
    if context is not None:
        if context.per_file_panels is not None:
            document["per_file_panels"] = context.per_file_panels
        if context.timestamp_format is not None:
            document["timestamp_format"] = context.timestamp_format
        if context.panel_alignment_mode is not None:
            document["panel_alignment_mode"] = context.panel_alignment_mode.value
    return canonical_dumps(document, indent=2) + "\n"


def save_config_document(
    path: Path, config: GraphConfig, context: Optional[SharedGraphContext] = None
) -> None:
    """Write a config document to a JSON file path."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dump_config_document(config, context), encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot write config document '{path}': {e}") from e
