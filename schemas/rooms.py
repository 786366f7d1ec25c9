from pydantic import BaseModel


class OnlineUser(BaseModel):
    display_name: str
    connected_at: str

class RoomDetailsResponse(BaseModel):
    room: str
    created_at: str
    online_users_count: int
    registered_keys_count: int
    online_users: list[OnlineUser] = []

class HealthResponse(BaseModel):
    status: str
    rooms: int
    connections: int
