"""
Encoding of container (blob) field values for response data.
"""

import base64
from typing import Any
from urllib.parse import urlsplit

from recordgate.backend.base import BackendError, RecordBackend
from recordgate.core.models import ContainerEncoding


def container_filename(reference: str) -> str:
    """
    Return the file name carried by a container reference, or "".

    References look like "/<path>/<filename>?<query>"; only references with
    a query part are treated as carrying a file name.
    """
    if "?" not in reference:
        return ""
    path = urlsplit(reference).path
    return path.rsplit("/", 1)[-1]


def encode_container(backend: RecordBackend, reference: Any, encoding: ContainerEncoding) -> Any:
    """
    Encode one container field value.

    Args:
        backend: Backend owning the container content
        reference: Raw field value as stored by the backend
        encoding: Active encoding policy

    Returns:
        base64: "<filename>;<base64 content>", or bare base64 without a file name
            (empty content when the backend has no data for the reference)
        raw: the reference unchanged
        default: the backend URL for the reference, or the reference itself
            when the backend serves no URLs
    """
    if reference is None or reference == "":
        return "" if encoding is ContainerEncoding.BASE64 else reference

    if encoding is ContainerEncoding.BASE64:
        filename = container_filename(str(reference))
        prefix = f"{filename};" if filename else ""
        try:
            data = backend.get_container_data(str(reference))
        except BackendError:
            # no content stored for a dangling reference
            data = b""
        if not isinstance(data, (bytes, bytearray)):
            data = b""
        return prefix + base64.b64encode(bytes(data)).decode("ascii")

    if encoding is ContainerEncoding.RAW:
        return reference

    url = backend.get_container_url(str(reference))
    return url if url is not None else reference
