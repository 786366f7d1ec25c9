from fastapi import APIRouter, HTTPException, Request
from schemas.rooms import HealthResponse, OnlineUser, RoomDetailsResponse
from backend import RelayBackend
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(tags=["rooms"])


@rooms_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    relay: RelayBackend = request.app.state.relay
    return HealthResponse(status="ok", rooms=len(relay.rooms), connections=len(relay.connections))


@rooms_router.get("/rooms/{room}", response_model=RoomDetailsResponse)
async def get_room_details(room: str, request: Request):
    """
    Get details of a live room.

    Returns:
    - room: Room name
    - created_at: When the first current member joined
    - online_users_count: Number of connected members
    - registered_keys_count: Number of members that have published a public key
    - online_users: Display name and join time of each member

    Connection identifiers and public keys are not exposed.
    """
    client_host = request.client.host if request.client else 'unknown'
    logger.info(f"Room details request for {room} from {client_host}")

    relay: RelayBackend = request.app.state.relay
    live_room = relay.rooms.get(room)
    if live_room is None:
        logger.info(f"Room details failed: Room {room} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    online_users = [
        OnlineUser(display_name=member.username, connected_at=member.connected_at)
        for member in live_room.members.values()
    ]
    logger.debug(f"Room details retrieved for {room}: {len(online_users)} users online")

    return RoomDetailsResponse(
        room=room,
        created_at=live_room.created_at,
        online_users_count=len(online_users),
        registered_keys_count=len(live_room.public_keys),
        online_users=online_users,
    )
