from __future__ import annotations

import base64
import json

import pytest

from backend import RelayBackend
from registry import Connection


def ciphertext_for(plaintext_len: int) -> str:
    """Base64 blob whose decoded length is plaintext_len plus the AES-GCM tag."""
    return base64.b64encode(b"\x00" * (plaintext_len + 16)).decode()


def frames(connection: Connection) -> list[dict]:
    return [json.loads(frame) for frame in connection.pending()]


@pytest.fixture
def relay() -> RelayBackend:
    return RelayBackend(
        max_username_length=16,
        max_room_name_length=32,
        max_plaintext_bytes=256,
        unique_display_names=False,
        max_room_members=0,
    )


@pytest.fixture
def joined(relay: RelayBackend):
    """Admit and join a user, returning the live connection with its queue drained."""

    def _join(username: str, room: str = "abc") -> Connection:
        connection = relay.admit(username, room)
        relay.join(connection)
        connection.pending()
        return connection

    return _join
