# tests/conftest.py
from __future__ import annotations

import base64
from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from qr_presence.main import app as fastapi_app
from qr_presence.services.attend_log import IngestionLog, get_ingestion_log
from qr_presence.services.cipher import TokenCipher, get_server_cipher
from qr_presence.services.generator import GeneratorRegistry, get_generator_registry

TEST_KEY = bytes(range(32))
TEST_KEY_B64 = base64.b64encode(TEST_KEY).decode("ascii")


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def key() -> bytes:
    return TEST_KEY


@pytest.fixture()
def cipher(key: bytes) -> TokenCipher:
    return TokenCipher(key)


@pytest.fixture()
def ingestion_log() -> IngestionLog:
    return IngestionLog(capacity=500)


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI, ingestion_log: IngestionLog, cipher: TokenCipher
) -> Iterator[None]:
    app.dependency_overrides[get_ingestion_log] = lambda: ingestion_log
    app.dependency_overrides[get_server_cipher] = lambda: cipher
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_ingestion_log, None)
        app.dependency_overrides.pop(get_server_cipher, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def registry(app: FastAPI, client: TestClient) -> Iterator[GeneratorRegistry]:
    """Fresh generator registry, stopped on the client's event loop afterwards."""
    reg = GeneratorRegistry()
    app.dependency_overrides[get_generator_registry] = lambda: reg
    try:
        yield reg
    finally:
        client.portal.call(reg.stop)
        app.dependency_overrides.pop(get_generator_registry, None)
