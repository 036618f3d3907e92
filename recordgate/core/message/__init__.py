"""
Tabular message model carrying request and response data.

Records, field metadata, multistatus entries, info and nav values, exposed
as dimension-typed sections for wire-format encoders and decoders.
"""

from .message import META_FIELD_NAME, Message
from .multistatus import ById, ByIndex, Multistatus, Reference
from .record import Record
from .row import Row
from .section import Section, SectionName

__all__ = [
    "Row",
    "Record",
    "Multistatus",
    "ById",
    "ByIndex",
    "Reference",
    "Section",
    "SectionName",
    "Message",
    "META_FIELD_NAME",
]
