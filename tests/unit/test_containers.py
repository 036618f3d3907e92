"""
Unit tests for container field encoding.
"""

import base64

import pytest

from recordgate.backend.base import BackendError
from recordgate.core.models import ContainerEncoding
from recordgate.core.operations import container_filename, encode_container


@pytest.fixture
def photo_reference(memory_backend):
    memory_backend.use_database("crm")
    memory_backend.create("contacts", {"email": "ada@example.com"})
    return memory_backend.put_container("contacts", "1", "photo", "ada.png", b"\x89PNG")


class TestContainerFilename:
    """Tests for container_filename"""

    def test_filename_with_query(self):
        """Test that the last path segment is the file name"""
        assert container_filename("/containers/crm/contacts/1/photo/0/ada.png?v=1") == "ada.png"

    def test_no_query_no_filename(self):
        """Test that references without a query carry no file name"""
        assert container_filename("/containers/crm/contacts/1/photo/0/ada.png") == ""


class TestEncodeContainer:
    """Tests for encode_container policies"""

    def test_base64_with_filename(self, memory_backend, photo_reference):
        """Test base64 encoding prefixed with the file name"""
        encoded = encode_container(memory_backend, photo_reference, ContainerEncoding.BASE64)
        assert encoded == "ada.png;" + base64.b64encode(b"\x89PNG").decode("ascii")

    def test_raw_passthrough(self, memory_backend, photo_reference):
        """Test that raw returns the reference unchanged"""
        assert encode_container(memory_backend, photo_reference, ContainerEncoding.RAW) == photo_reference

    def test_default_uses_backend_url(self, memory_backend, photo_reference):
        """Test that default asks the backend for a URL"""
        assert encode_container(memory_backend, photo_reference, ContainerEncoding.DEFAULT) == (
            "http://files.test" + photo_reference
        )

    def test_default_without_url_keeps_reference(self, memory_backend, photo_reference):
        """Test that default falls back to the reference when the backend serves no URLs"""
        memory_backend.container_base_url = None
        assert encode_container(memory_backend, photo_reference, ContainerEncoding.DEFAULT) == photo_reference

    def test_empty_container(self, memory_backend):
        """Test that empty containers encode to nothing"""
        assert encode_container(memory_backend, None, ContainerEncoding.BASE64) == ""
        assert encode_container(memory_backend, None, ContainerEncoding.RAW) is None
        assert encode_container(memory_backend, "", ContainerEncoding.DEFAULT) == ""

    def test_missing_content_raises(self, memory_backend):
        """Test that base64 of an unknown reference surfaces the backend error"""
        with pytest.raises(BackendError) as exc_info:
            encode_container(memory_backend, "/containers/none?v=1", ContainerEncoding.BASE64)
        assert exc_info.value.code == 401
