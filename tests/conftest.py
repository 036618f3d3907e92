"""
Pytest configuration and fixtures for recordgate tests

This module provides shared fixtures for unit and integration tests.
"""
import os
from typing import Generator

import pytest
from testcontainers.postgres import PostgresContainer

from recordgate.backend.memory import InMemoryBackend
from recordgate.core.config import LayoutConfigBuilder
from recordgate.core.message import Message, Record
from recordgate.core.models import DatabaseSettings


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )


# =======================
# LAYOUT FIXTURES
# =======================

@pytest.fixture
def contacts_layout():
    """
    Field definitions of the 'contacts' layout

    Returns:
        email and name text fields, a 3-repetition phone field and a photo container
    """
    return (
        LayoutConfigBuilder()
        .add_field("email")
        .add_field("name")
        .add_repeating_field("phone", 3)
        .add_container_field("photo")
        .build()
    )


@pytest.fixture
def notes_layout():
    """Field definitions of the 'notes' layout"""
    return (
        LayoutConfigBuilder()
        .add_field("title")
        .add_field("body")
        .add_field("created", result_type="timestamp", auto_entered=True)
        .build()
    )


# =======================
# BACKEND FIXTURES
# =======================

@pytest.fixture
def memory_backend(contacts_layout, notes_layout) -> InMemoryBackend:
    """
    In-memory backend with the contacts and notes layouts

    Returns:
        InMemoryBackend serving container URLs under http://files.test
    """
    return InMemoryBackend(
        layouts={"contacts": contacts_layout, "notes": notes_layout},
        container_base_url="http://files.test",
    )


@pytest.fixture
def seeded_backend(memory_backend) -> InMemoryBackend:
    """
    In-memory backend with three contacts in database 'crm'

    Record ids are "1", "2" and "3"; "3" shares its email with "2".
    """
    memory_backend.use_database("crm")
    memory_backend.create("contacts", {"email": "ada@example.com", "name": "Ada"})
    memory_backend.create("contacts", {"email": "bob@example.com", "name": "Bob", "phone": {0: "555-0100"}})
    memory_backend.create("contacts", {"email": "bob@example.com", "name": "Robert"})
    memory_backend.calls.clear()
    return memory_backend


# =======================
# MESSAGE FIXTURES
# =======================

def build_request(*records: Record) -> Message:
    """Build a request Message holding the given records"""
    message = Message()
    for record in records:
        message.add_record(record)
    return message


@pytest.fixture
def request_builder():
    """Factory building request Messages from Records"""
    return build_request


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Skips the requesting tests when Docker is not available.

    Yields:
        PostgresContainer instance
    """
    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_gateway",
        password="test_password",
        dbname="test_recordgate",
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    try:
        yield container
    finally:
        container.stop()


@pytest.fixture(scope="session")
def database_settings(postgres_container) -> DatabaseSettings:
    """Connection settings pointing at the test container"""
    return DatabaseSettings(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        name="test_recordgate",
        user="test_gateway",
        password="test_password",
        min_size=1,
        max_size=4,
    )


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture
def clean_env(monkeypatch):
    """Remove gateway environment overrides for the duration of a test"""
    for variable in (
        "RECORDGATE_DIAGNOSTICS",
        "RECORDGATE_DATABASE",
        "DB_HOST",
        "DB_PORT",
        "DB_NAME",
        "DB_USER",
        "DB_PASSWORD",
    ):
        monkeypatch.delenv(variable, raising=False)
    return os.environ
