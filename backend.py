import base64
import binascii
from typing import Optional

from pydantic import ValidationError

from constants import (
    AES_GCM_TAG_BYTES,
    DEFAULT_USERNAME,
    MAX_PLAINTEXT_BYTES,
    MAX_ROOM_MEMBERS,
    MAX_ROOM_NAME_LENGTH,
    MAX_USERNAME_LENGTH,
    UNIQUE_DISPLAY_NAMES,
)
from errors import JoinRejected, ProtocolViolation
from logging_config import get_logger
from registry import Connection, ConnectionRegistry, RoomRegistry
from schemas.messages import (
    Announcement,
    Ciphertext,
    Exchange,
    KeyInit,
    OutboundFrame,
    RelayedMessage,
    SendExchange,
    SendMessage,
    inbound_frame_adapter,
)

logger = get_logger(__name__)


def plaintext_length(content: str) -> Optional[int]:
    """Length of the plaintext behind a base64 AES-GCM ciphertext, or None if it is not valid base64."""
    try:
        decoded = base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError):
        return None
    return len(decoded) - AES_GCM_TAG_BYTES


class RelayBackend:
    """Owns the connection and room registries and every mutation of them.

    All methods are synchronous and never await, so on a single event loop each
    call runs to completion before another connection's frame is processed.
    Outbound frames are queued on the recipients' connections and never awaited.
    """

    def __init__(
        self,
        max_username_length: int = MAX_USERNAME_LENGTH,
        max_room_name_length: int = MAX_ROOM_NAME_LENGTH,
        max_plaintext_bytes: int = MAX_PLAINTEXT_BYTES,
        unique_display_names: bool = UNIQUE_DISPLAY_NAMES,
        max_room_members: int = MAX_ROOM_MEMBERS,
    ):
        self.connections = ConnectionRegistry()
        self.rooms = RoomRegistry()
        self.max_username_length = max_username_length
        self.max_room_name_length = max_room_name_length
        self.max_plaintext_bytes = max_plaintext_bytes
        self.unique_display_names = unique_display_names
        self.max_room_members = max_room_members
        logger.info(
            f"Initializing RelayBackend (unique_display_names={unique_display_names}, "
            f"max_room_members={max_room_members or 'unlimited'})"
        )

    # Transport boundary

    def admit(self, username: Optional[str], room: Optional[str]) -> Connection:
        """Validate upgrade parameters and build the connection context. Mutates nothing."""
        final_username = username.strip() if username and username.strip() else DEFAULT_USERNAME
        if len(final_username) > self.max_username_length:
            raise JoinRejected(f"Username must be at most {self.max_username_length} characters")

        if not room:
            raise JoinRejected("Room is required")
        if len(room) > self.max_room_name_length:
            raise JoinRejected(f"Room name must be at most {self.max_room_name_length} characters")

        self._check_room_policies(final_username, room)
        return Connection(final_username, room)

    def _check_room_policies(self, username: str, room_name: str) -> None:
        room = self.rooms.get(room_name)
        if room is None:
            return
        if self.max_room_members and len(room) >= self.max_room_members:
            raise JoinRejected("Room is full")
        if self.unique_display_names and username.lower() in room.display_names():
            raise JoinRejected(f"Display name '{username}' is already taken")

    # Lifecycle

    def join(self, connection: Connection) -> None:
        """Make an admitted connection a room member.

        Room policies are checked again here, since other connections may have
        joined after this one was admitted. Raises JoinRejected without mutating.
        """
        self._check_room_policies(connection.username, connection.room)
        self.connections.add(connection)
        room = self.rooms.ensure(connection.room)
        room.subscribe(connection)
        logger.info(f"{connection.username} ({connection.uuid}) joined room {connection.room} ({len(room)} members)")

        self.emit(connection.room, Announcement(content=f"{connection.username} has joined the room!"))
        connection.send(KeyInit(keys=dict(room.public_keys)).model_dump_json())

    def leave(self, connection: Connection) -> bool:
        """Remove a connection from both registries. Calling it again for the same connection is a no-op."""
        if self.connections.pop(connection.uuid) is None:
            logger.debug(f"Connection {connection.uuid} already left room {connection.room}")
            connection.close()
            return False

        room = self.rooms.get(connection.room)
        if room is not None:
            room.unsubscribe(connection.uuid)
            room.drop_key(connection.uuid)
            if room.is_empty():
                self.rooms.remove(connection.room)
        logger.info(f"{connection.username} ({connection.uuid}) left room {connection.room}")

        self.emit(connection.room, Announcement(content=f"{connection.username} has left the room!"))
        connection.close()
        return True

    # Delivery

    def emit(self, room_name: str, frame: OutboundFrame) -> int:
        """Queue a frame for every current member of a room. Returns the number of recipients."""
        room = self.rooms.get(room_name)
        if room is None:
            return 0
        payload = frame.model_dump_json()
        delivered = 0
        for member in list(room.members.values()):
            if member.send(payload):
                delivered += 1
        logger.debug(f"Broadcast {frame.type} to {delivered} members of room {room_name}")
        return delivered

    # Protocol

    def handle(self, connection: Connection, raw_frame):
        try:
            frame = inbound_frame_adapter.validate_json(raw_frame)
        except ValidationError as e:
            raise ProtocolViolation(f"Malformed frame from {connection.uuid}: {e.error_count()} error(s)") from e

        if isinstance(frame, SendMessage):
            return self.relay_messages(connection, frame)
        if isinstance(frame, SendExchange):
            return self.record_exchange(connection, frame)
        raise ProtocolViolation(f"Unhandled frame type {frame.type!r}")

    def relay_messages(self, connection: Connection, frame: SendMessage) -> int:
        delivered = 0
        for target_id, ciphertext in frame.messages.items():
            target = self.connections.get(target_id)
            if target is None:
                logger.debug(f"Skipping message from {connection.uuid} to unknown target {target_id}")
                continue
            if not self._acceptable(ciphertext):
                logger.debug(f"Skipping out-of-bounds message from {connection.uuid} to {target_id}")
                continue

            envelope = RelayedMessage(
                sender=connection.username,
                uuid=connection.uuid,
                content=ciphertext.content,
                iv=ciphertext.iv,
            )
            if target.send(envelope.model_dump_json()):
                delivered += 1

        logger.debug(f"{connection.username} sent a message in room {connection.room} ({delivered}/{len(frame.messages)} delivered)")
        return delivered

    def record_exchange(self, connection: Connection, frame: SendExchange) -> bool:
        room = self.rooms.get(connection.room)
        if room is None:
            logger.warning(f"Key exchange from {connection.uuid} for missing room {connection.room}")
            return False
        if not room.register_key(connection.uuid, frame.key):
            logger.debug(f"Ignoring repeated key exchange from {connection.uuid} in room {connection.room}")
            return False

        logger.info(f"{connection.username} ({connection.uuid}) registered a public key in room {connection.room}")
        self.emit(connection.room, Exchange(uuid=connection.uuid, key=frame.key))
        return True

    def _acceptable(self, ciphertext: Ciphertext) -> bool:
        if not ciphertext.iv:
            return False
        length = plaintext_length(ciphertext.content)
        return length is not None and 0 < length <= self.max_plaintext_bytes
