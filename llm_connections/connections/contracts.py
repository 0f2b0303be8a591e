"""Pydantic contracts for connection input and the wire payload."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_ADAPTER = "openai"
KNOWN_ADAPTERS = ("openai", "anthropic", "azure-openai", "vertex", "ollama", "kobold")


class ConnectionInput(BaseModel):
    """Canonical caller input after alias resolution."""

    model_config = ConfigDict(extra="forbid")

    name: str = ""
    adapter: str = DEFAULT_ADAPTER
    api_key: str = ""
    base_url: str | None = None
    enable_default_models: bool | None = None
    extra_headers: dict[str, str] = Field(default_factory=dict)
    custom_models: list[str] = Field(default_factory=list)


class ConnectionPayload(BaseModel):
    """Resource record sent to the backend; unset fields are left off the wire."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    project_id: str = Field(alias="projectId", min_length=1)
    id: str | None = None
    provider: str | None = None
    adapter: str | None = None
    secret_key: str | None = Field(default=None, alias="secretKey")
    base_url: str | None = Field(default=None, alias="baseURL")
    with_default_models: bool | None = Field(default=None, alias="withDefaultModels")
    custom_models: list[str] | None = Field(default=None, alias="customModels")
    extra_headers: dict[str, str] | None = Field(default=None, alias="extraHeaders")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
