import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class FriendRequestCreate(BaseModel):
    receiver_id: uuid.UUID


class FriendRequestAnswer(BaseModel):
    status: Literal["accepted", "rejected"]


class OnlineStatusUpdate(BaseModel):
    is_online: bool


class FriendProfile(BaseModel):
    id: uuid.UUID
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    profile_picture: str | None = None
    is_online: bool | None = None
    last_seen_at: datetime | None = None

    model_config = {"from_attributes": True}


class FriendResponse(FriendProfile):
    since: datetime


class FriendRequestResponse(BaseModel):
    id: int
    requester_id: uuid.UUID
    receiver_id: uuid.UUID
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class IncomingFriendRequest(FriendRequestResponse):
    requester: FriendProfile | None = None
    mutual_friends_count: int = 0


class OutgoingFriendRequest(FriendRequestResponse):
    receiver: FriendProfile | None = None


class FriendshipResponse(BaseModel):
    id: int
    user_id_1: uuid.UUID
    user_id_2: uuid.UUID
    created_at: datetime
    last_message_at: datetime | None = None

    model_config = {"from_attributes": True}


class FriendRequestAnswerResponse(BaseModel):
    status: str
    friendship: FriendshipResponse | None = None
