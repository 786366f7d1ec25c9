import asyncio
import uuid
from datetime import datetime
from typing import Dict, Iterator, List, Optional

from constants import OUTBOX_MAX_FRAMES
from logging_config import get_logger

logger = get_logger(__name__)


class Connection:
    """A live relay participant.

    Outbound frames are queued as serialized JSON and drained by the transport
    in FIFO order. Once closed, further frames are dropped.
    """

    def __init__(
        self,
        username: str,
        room: str,
        connection_id: Optional[str] = None,
        max_pending: int = OUTBOX_MAX_FRAMES,
    ):
        self.uuid = connection_id or str(uuid.uuid4())
        self.username = username
        self.room = room
        self.connected_at = datetime.now().isoformat()
        self.outbox: "asyncio.Queue[Optional[str]]" = asyncio.Queue(maxsize=max_pending)
        self.closed = False

    def send(self, frame: str) -> bool:
        if self.closed:
            logger.debug(f"Dropping frame for closed connection {self.uuid}")
            return False
        try:
            self.outbox.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for connection {self.uuid}, dropping frame")
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Wakes the writer so it can exit after flushing
        if self.outbox.full():
            self.outbox.get_nowait()
        self.outbox.put_nowait(None)

    def pending(self) -> List[str]:
        """Drain and return every queued frame without waiting."""
        frames = []
        while not self.outbox.empty():
            frame = self.outbox.get_nowait()
            if frame is not None:
                frames.append(frame)
        return frames

    def __repr__(self) -> str:
        return f"Connection(uuid={self.uuid!r}, username={self.username!r}, room={self.room!r})"


class ConnectionRegistry:
    """Maps connection identifiers to live connections."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def add(self, connection: Connection) -> None:
        if connection.uuid in self._connections:
            raise ValueError(f"Connection {connection.uuid} is already registered")
        self._connections[connection.uuid] = connection

    def get(self, connection_id: str) -> Optional[Connection]:
        return self._connections.get(connection_id)

    def pop(self, connection_id: str) -> Optional[Connection]:
        return self._connections.pop(connection_id, None)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)


class Room:
    def __init__(self, name: str):
        self.name = name
        self.created_at = datetime.now().isoformat()
        self.members: Dict[str, Connection] = {}
        self.public_keys: Dict[str, str] = {}

    def subscribe(self, connection: Connection) -> None:
        self.members[connection.uuid] = connection

    def unsubscribe(self, connection_id: str) -> Optional[Connection]:
        return self.members.pop(connection_id, None)

    def register_key(self, connection_id: str, key: str) -> bool:
        """Record a public key. The first key a member submits wins."""
        if connection_id in self.public_keys:
            return False
        self.public_keys[connection_id] = key
        return True

    def drop_key(self, connection_id: str) -> Optional[str]:
        return self.public_keys.pop(connection_id, None)

    def display_names(self) -> set:
        """Display names currently in use, lower-cased for case-insensitive comparison."""
        return {member.username.lower() for member in self.members.values()}

    def is_empty(self) -> bool:
        return not self.members

    def __len__(self) -> int:
        return len(self.members)


class RoomRegistry:
    """Maps room names to rooms. Rooms exist only while they have members."""

    def __init__(self):
        self._rooms: Dict[str, Room] = {}

    def ensure(self, name: str) -> Room:
        room = self._rooms.get(name)
        if room is None:
            room = self._rooms[name] = Room(name)
            logger.info(f"Room {name} created")
        return room

    def get(self, name: str) -> Optional[Room]:
        return self._rooms.get(name)

    def remove(self, name: str) -> Optional[Room]:
        room = self._rooms.pop(name, None)
        if room is not None:
            logger.info(f"Room {name} removed")
        return room

    def names(self) -> Iterator[str]:
        return iter(list(self._rooms))

    def __contains__(self, name: object) -> bool:
        return name in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
