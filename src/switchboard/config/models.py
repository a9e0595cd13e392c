"""MCP server configuration models.

The file format is compatible with Claude Desktop's ``mcpServers``
mapping: server entries are keyed by name, and ``transport`` may be
omitted (``command`` implies stdio, ``url`` implies http).

Example JSON::

    {
      "mcpServers": {
        "fs": {"command": "npx", "args": ["-y", "@mcp/filesystem", "/tmp"]},
        "remote": {"transport": "sse", "url": "http://localhost:3001"}
      }
    }
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator, model_validator

Transport = Literal["stdio", "sse", "http"]
TRANSPORTS: tuple[str, ...] = ("stdio", "sse", "http")


class _ServerConfigBase(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    env: dict[str, str] | None = None
    enabled: bool = True
    description: str | None = None

    @field_validator("name")
    @classmethod
    def _no_separator(cls, value: str) -> str:
        if ":" in value:
            msg = "server name must not contain ':'"
            raise ValueError(msg)
        return value


class StdioServerConfig(_ServerConfigBase):
    """A server launched as a child process."""

    transport: Literal["stdio"] = "stdio"
    command: str = Field(min_length=1)
    args: list[str] = []


class _UrlServerConfig(_ServerConfigBase):
    url: str

    @field_validator("url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            msg = "url must start with http:// or https://"
            raise ValueError(msg)
        return value


class SseServerConfig(_UrlServerConfig):
    """A server reached over a server-push event stream."""

    transport: Literal["sse"] = "sse"


class HttpServerConfig(_UrlServerConfig):
    """A server reached with plain JSON-RPC POSTs."""

    transport: Literal["http"] = "http"


MCPServerConfig = Annotated[
    Union[StdioServerConfig, SseServerConfig, HttpServerConfig],
    Field(discriminator="transport"),
]

server_config_adapter: TypeAdapter[MCPServerConfig] = TypeAdapter(MCPServerConfig)


def parse_server_config(data: Any) -> MCPServerConfig:
    """Validate one server entry (``transport`` inferred when missing)."""
    if isinstance(data, dict):
        data = _with_transport(data)
    return server_config_adapter.validate_python(data)


def is_valid_server_config(data: Any) -> bool:
    try:
        parse_server_config(data)
    except ValidationError:
        return False
    return True


def _with_transport(entry: dict[str, Any]) -> dict[str, Any]:
    if "transport" in entry:
        return entry
    if "command" in entry:
        return {**entry, "transport": "stdio"}
    if "url" in entry:
        return {**entry, "transport": "http"}
    return entry


class MCPConfigFile(BaseModel):
    """The whole configuration file: server name -> server config."""

    model_config = {"populate_by_name": True}

    mcp_servers: dict[str, MCPServerConfig] = Field(default_factory=dict, alias="mcpServers")

    @model_validator(mode="before")
    @classmethod
    def _fill_entries(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        key = "mcpServers" if "mcpServers" in data else "mcp_servers"
        servers = data.get(key)
        if not isinstance(servers, dict):
            return data
        filled: dict[str, Any] = {}
        for name, entry in servers.items():
            if isinstance(entry, dict):
                entry = _with_transport({"name": name, **entry})
            filled[name] = entry
        return {**data, key: filled}

    def to_wire(self) -> dict[str, Any]:
        """Serialize for writing; ``name`` is dropped since it is the key."""
        return {
            "mcpServers": {
                name: server.model_dump(exclude={"name"}, exclude_none=True)
                for name, server in self.mcp_servers.items()
            }
        }
