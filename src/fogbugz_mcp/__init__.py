"""fogbugz-mcp: expose a FogBugz issue tracker to MCP clients over stdio."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fogbugz-mcp")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = ["__version__"]
