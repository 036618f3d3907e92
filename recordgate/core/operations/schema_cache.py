"""
Layout field metadata cached for the duration of one engine call.
"""

from recordgate.core.models import FieldDescriptor


class SchemaCache:
    """
    Field descriptors of one layout, loaded at most once.

    The layout schema is assumed stable for the duration of one response,
    so load() refuses to replace descriptors once they are present.
    """

    def __init__(self):
        self._fields: dict[str, FieldDescriptor] | None = None
        # Set once the metaField section of the response has been filled
        self.reported = False

    @property
    def populated(self) -> bool:
        return self._fields is not None

    def load(self, descriptors: list[FieldDescriptor]) -> None:
        """
        Populate the cache.

        Raises:
            RuntimeError: If the cache is already populated
        """
        if self._fields is not None:
            raise RuntimeError("Schema cache is already populated")
        self._fields = {descriptor.name: descriptor for descriptor in descriptors}

    def get(self, field_name: str) -> FieldDescriptor:
        """Return the descriptor for field_name; unknown fields are plain text."""
        if self._fields is None:
            raise RuntimeError("Schema cache is not populated")
        descriptor = self._fields.get(field_name)
        if descriptor is None:
            return FieldDescriptor(name=field_name)
        return descriptor

    def __len__(self) -> int:
        return len(self._fields or {})
