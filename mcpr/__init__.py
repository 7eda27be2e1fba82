"""mcpr: Model Context Protocol server and client."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from mcpr.capabilities.models import new_prompt as new_prompt
    from mcpr.capabilities.models import new_resource as new_resource
    from mcpr.capabilities.models import new_tool as new_tool
    from mcpr.capabilities.registry import Server as Server
    from mcpr.client.client import MCPClient as MCPClient
    from mcpr.client.client import new_client_http as new_client_http
    from mcpr.client.client import new_client_io as new_client_io
    from mcpr.transports.http import create_app as create_app
    from mcpr.transports.http import serve_http as serve_http
    from mcpr.transports.stdio import serve_io as serve_io

_EXPORTS = {
    "Server": "mcpr.capabilities.registry",
    "new_tool": "mcpr.capabilities.models",
    "new_resource": "mcpr.capabilities.models",
    "new_prompt": "mcpr.capabilities.models",
    "MCPClient": "mcpr.client.client",
    "new_client_io": "mcpr.client.client",
    "new_client_http": "mcpr.client.client",
    "create_app": "mcpr.transports.http",
    "serve_http": "mcpr.transports.http",
    "serve_io": "mcpr.transports.stdio",
}


def __getattr__(name: str) -> object:
    module_path = _EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'mcpr' has no attribute {name!r}")


__all__ = ["__version__", *_EXPORTS]
