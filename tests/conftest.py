"""Shared fixtures for Portly tests"""
import socket

import pytest

LOCALHOST = "127.0.0.1"


def get_free_port() -> int:
    """Ask the OS for a currently free loopback port"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((LOCALHOST, 0))
        return sock.getsockname()[1]


@pytest.fixture
def free_port() -> int:
    return get_free_port()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's environment out of Settings"""
    from portly.settings import Settings

    for name in Settings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)
