"""
GatewaySettings model holding validated gateway configuration.
"""

from pydantic import BaseModel, ConfigDict, Field

from .backend_record import FieldDescriptor
from .operation_options import OperationOptions


class DatabaseSettings(BaseModel):
    """
    PostgreSQL connection settings for the record store backend.

    Attributes:
        host: Database host
        port: Database port
        name: Database name
        user: Database user
        password: Database password (required before connecting)
        min_size: Minimum pool size
        max_size: Maximum pool size
    """

    host: str = "localhost"
    port: int = Field(5432, ge=1, le=65535)
    name: str = "recordgate"
    user: str = "recordgate"
    password: str | None = None
    min_size: int = Field(2, ge=1)
    max_size: int = Field(10, ge=1)


class GatewaySettings(BaseModel):
    """
    Complete gateway configuration.

    Attributes:
        diagnostics: Enables the echo diagnostic dump
        default_database: Logical database selected on the backend
        operation_defaults: Default record operation switches
        database: Record store connection settings
        layouts: Layout name -> field definitions
    """

    diagnostics: bool = False
    default_database: str = Field("default", min_length=1)
    operation_defaults: OperationOptions = Field(default_factory=OperationOptions)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    layouts: dict[str, list[FieldDescriptor]] = Field(default_factory=dict)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "diagnostics": True,
            "default_database": "crm",
            "operation_defaults": {
                "update_else_create": False,
                "container_encoding": "base64"
            },
            "database": {"host": "localhost", "port": 5432, "name": "recordgate"},
            "layouts": {
                "contacts": [
                    {"name": "email"},
                    {"name": "phone", "max_repeat": 3},
                    {"name": "photo", "result_type": "container"}
                ]
            }
        }
    })
