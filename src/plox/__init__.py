"""plox: log to time-series extraction, caching and panel layout."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("plox")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from plox.api import build_graph, extract, load_config, save_config, validate, ValidationResult
from plox.codes import ErrorCode
from plox.context import SharedGraphContext
from plox.kernel.errors import PloxError
from plox.kernel.graph_spec import GraphSpec
from plox.kernel.spec import GraphConfig, Line, Panel

__all__ = [
    "__version__",
    "build_graph",
    "extract",
    "load_config",
    "save_config",
    "validate",
    "ValidationResult",
    "ErrorCode",
    "SharedGraphContext",
    "PloxError",
    "GraphSpec",
    "GraphConfig",
    "Line",
    "Panel",
]
