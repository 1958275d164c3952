"""Run-wide options shared by all panels and lines."""

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from plox.kernel.bindings import InputFile, input_files
from plox.kernel.cache import CacheRoot
from plox.kernel.ranges import TimeRangeOverride
from plox.kernel.spec import PanelAlignmentMode
from plox.kernel.timestamp import DEFAULT_TIMESTAMP_FORMAT, TimestampFormat


def default_max_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


class SharedGraphContext(BaseModel):
    """Options that apply to the whole invocation.

    Fields left as None may be filled from a config document through
    merge_with_other(); explicit values (CLI) always win.
    """
    input: List[Path] = Field(default_factory=list)
    per_file_panels: Optional[bool] = None
    timestamp_format: Optional[str] = None
    force_csv_regen: bool = False
    cache_dir: Optional[Path] = None
    panel_alignment_mode: Optional[PanelAlignmentMode] = None
    time_range: Optional[TimeRangeOverride] = None
    allow_invalid_timestamps: bool = False
    max_workers: int = Field(default_factory=default_max_workers, ge=1)
    output_config_path: Optional[Path] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("timestamp_format")
    @classmethod
    def validate_timestamp_format(cls, v: Optional[str]) -> Optional[str]:
        """Compile the format eagerly so a bad specifier fails at load time."""
        if v is not None:
            TimestampFormat(v)
        return v

    @model_validator(mode="after")
    def check_range_options(self) -> "SharedGraphContext":
        if self.time_range is not None and self.panel_alignment_mode is not None:
            raise ValueError("time_range conflicts with panel_alignment_mode")
        return self

    def resolved_timestamp_format(self) -> TimestampFormat:
        return TimestampFormat(self.timestamp_format or DEFAULT_TIMESTAMP_FORMAT)

    def resolved_per_file_panels(self) -> bool:
        return bool(self.per_file_panels)

    def input_files(self) -> List[InputFile]:
        return input_files(self.input)

    def cache_root(self) -> CacheRoot:
        return CacheRoot(self.cache_dir)

    def merge_with_other(self, other: "SharedGraphContext") -> "SharedGraphContext":
        """Return a copy with unset options taken from `other` (e.g. a config document)."""
        update = {}
        for name in ("per_file_panels", "timestamp_format"):
            if getattr(self, name) is None and getattr(other, name) is not None:
                update[name] = getattr(other, name)
        if (
            self.panel_alignment_mode is None
            and self.time_range is None
            and other.panel_alignment_mode is not None
        ):
            update["panel_alignment_mode"] = other.panel_alignment_mode
        if not self.input and other.input:
            update["input"] = other.input
        return self.model_copy(update=update)
