"""
Per-request options for record operations, and script hook models.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ContainerEncoding(str, Enum):
    """How container (blob) field values are written into response data."""

    DEFAULT = "default"   # backend URL reference
    BASE64 = "base64"     # "<filename>;" + base64 content
    RAW = "raw"           # backend reference passed through unchanged


class ScriptHook(BaseModel):
    """
    A backend script to run around a write.

    Backends accept at most one opaque string parameter.
    """

    model_config = ConfigDict(frozen=True)

    script: str = Field(..., min_length=1)
    parameter: str | None = None


class ScriptHooks(BaseModel):
    """
    Scripts to run before and after one backend write.
    """

    model_config = ConfigDict(frozen=True)

    pre: ScriptHook | None = None
    post: ScriptHook | None = None

    def is_empty(self) -> bool:
        return self.pre is None and self.post is None


class OperationOptions(BaseModel):
    """
    Request-scoped switches for the record operations engine.

    Attributes:
        is_single: Request addresses exactly one record; failures raise
        suppress_data: Only record ids are returned for created records
        update_else_create: Updates that find no record create one instead
        update_append: Update values are appended to current field values
        container_encoding: Encoding of container field values
    """

    model_config = ConfigDict(frozen=True)

    is_single: bool = False
    suppress_data: bool = False
    update_else_create: bool = False
    update_append: bool = False
    container_encoding: ContainerEncoding = ContainerEncoding.DEFAULT
