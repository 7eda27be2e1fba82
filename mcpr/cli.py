"""mcpr CLI entrypoint."""

from __future__ import annotations

import json
import shlex
from typing import Optional

import click

from mcpr import __version__


@click.group()
@click.version_option(version=__version__, prog_name="mcpr")
def main() -> None:
    """mcpr: Model Context Protocol server and client."""


@main.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "http"]),
    default="stdio",
    help="Transport to serve the example server over.",
)
@click.option("--host", default=None, help="HTTP host (defaults to MCPR_HTTP_HOST).")
@click.option("--port", type=int, default=None, help="HTTP port (defaults to MCPR_HTTP_PORT).")
def serve(transport: str, host: Optional[str], port: Optional[int]) -> None:
    """Serve the bundled example server."""
    from mcpr.main import SERVER
    from mcpr.transports.http import serve_http
    from mcpr.transports.stdio import serve_io

    if transport == "stdio":
        serve_io(SERVER)
    else:
        serve_http(SERVER, host=host, port=port)


@main.command("tools")
@click.argument("server")
@click.option(
    "--transport",
    type=click.Choice(["stdio", "http"]),
    default="stdio",
    help="MCP server transport type.",
)
def list_tools(server: str, transport: str) -> None:
    """List tools exposed by an MCP server.

    SERVER is the command (for stdio) or the /mcp URL (for http).
    """
    from mcpr.client.client import new_client_http, new_client_io
    from mcpr.core.errors import ClientError

    try:
        if transport == "stdio":
            command, *args = shlex.split(server)
            client = new_client_io(command, *args)
        else:
            client = new_client_http(server)
        with client:
            client.initialize()
            tools = client.tools_list()
    except ClientError as exc:
        raise click.ClickException(str(exc)) from exc

    if not tools:
        click.echo("No tools exposed.")
        return
    for tool in tools:
        click.echo(f"{tool['name']}: {tool.get('description', '')}")
        click.echo(f"  inputSchema: {json.dumps(tool.get('inputSchema', {}))}")


if __name__ == "__main__":
    main()
