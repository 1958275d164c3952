"""Binding layer: connects configured lines to concrete input files."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Literal, Optional, Sequence, Union

from .errors import UnresolvedBindingError
from .spec import BoundToIndex, BoundToName, Line, Unbound


@dataclass(frozen=True)
class InputFile:
    """An input log file and its position in the input list."""
    path: Path
    index: int

    @property
    def stem(self) -> str:
        return self.path.stem


def input_files(paths: Sequence[Union[str, Path]]) -> List[InputFile]:
    """Build the ordered InputFile list from user supplied paths."""
    return [InputFile(Path(p), i) for i, p in enumerate(paths)]


@dataclass(frozen=True)
class ResolvedSource:
    """The concrete file a resolved line reads from.

    origin:
    - "populated": an unbound line populated to input `index`
    - "file_id": a line bound with file_id to input `index`
    - "file_name": a line bound to an explicit path (index is None)
    """
    origin: Literal["populated", "file_id", "file_name"]
    path: Path
    index: Optional[int] = None

    @classmethod
    def populated(cls, input_file: InputFile) -> "ResolvedSource":
        return cls("populated", input_file.path, input_file.index)

    @classmethod
    def file_id(cls, input_file: InputFile) -> "ResolvedSource":
        return cls("file_id", input_file.path, input_file.index)

    @classmethod
    def file_name(cls, path: Path) -> "ResolvedSource":
        return cls("file_name", Path(path))


def bind_line(line: Line, inputs: Sequence[InputFile]) -> List[ResolvedSource]:
    """Resolve which files a line applies to.

    - BoundToIndex(n): the n-th input (out of range is a configuration error)
    - BoundToName(path): that path, whether or not it is an input
    - Unbound: every input, in input order
    """
    binding = line.binding
    if isinstance(binding, BoundToName):
        return [ResolvedSource.file_name(binding.path)]
    if isinstance(binding, BoundToIndex):
        if binding.index >= len(inputs):
            raise UnresolvedBindingError(
                f"Line '{line.pattern}' references file_id {binding.index}, "
                f"but only {len(inputs)} input file(s) were given",
                file_id=binding.index,
            )
        return [ResolvedSource.file_id(inputs[binding.index])]
    assert isinstance(binding, Unbound)
    if not inputs:
        raise UnresolvedBindingError(
            f"Line '{line.pattern}' is not bound to a file and no input files were given"
        )
    return [ResolvedSource.populated(f) for f in inputs]
