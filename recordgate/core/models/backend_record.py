"""
Backend-side record and field metadata models.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ResultType = Literal["text", "number", "date", "time", "timestamp", "container"]


class FieldDescriptor(BaseModel):
    """
    Layout metadata for one backend field.

    Attributes:
        name: Field name
        auto_entered: Backend fills the value on create
        is_global: One value shared by every record in the layout
        max_repeat: Number of repetitions (1 for a plain field)
        result_type: Value type; "container" fields hold blob references
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., min_length=1)
    auto_entered: bool = False
    is_global: bool = Field(False, alias="global")
    max_repeat: int = Field(1, ge=1)
    result_type: ResultType = "text"

    def to_meta_row(self) -> dict[str, Any]:
        """Export as a 'metaField' section row."""
        return {
            "name": self.name,
            "autoEntered": 1 if self.auto_entered else 0,
            "global": 1 if self.is_global else 0,
            "maxRepeat": self.max_repeat,
            "resultType": self.result_type,
        }


class BackendRecord(BaseModel):
    """
    A record as returned by a backend.

    Attributes:
        record_id: Backend-assigned literal identifier
        fields: Field name -> per-repetition values, in layout order
    """

    record_id: str = Field(..., min_length=1)
    fields: dict[str, list[Any]] = Field(default_factory=dict)

    def field_names(self) -> list[str]:
        return list(self.fields)

    def get_value(self, field_name: str, repetition: int = 0) -> Any:
        """Return one repetition of a field, or None when it is unset."""
        values = self.fields.get(field_name, [])
        if 0 <= repetition < len(values):
            return values[repetition]
        return None
