"""
Core data models for the record gateway.

All models use Pydantic for runtime validation and type safety.
"""

from .backend_record import BackendRecord, FieldDescriptor
from .gateway_settings import DatabaseSettings, GatewaySettings
from .operation_options import ContainerEncoding, OperationOptions, ScriptHook, ScriptHooks

__all__ = [
    "BackendRecord",
    "FieldDescriptor",
    "ContainerEncoding",
    "OperationOptions",
    "ScriptHook",
    "ScriptHooks",
    "DatabaseSettings",
    "GatewaySettings",
]
