import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from friendgraph.database import get_db
from friendgraph.dependencies import get_current_user, get_friendship_service
from friendgraph.models.user import User
from friendgraph.schemas.friendship import (
    FriendRequestAnswer,
    FriendRequestAnswerResponse,
    FriendRequestCreate,
    FriendRequestResponse,
    FriendResponse,
    IncomingFriendRequest,
    OnlineStatusUpdate,
    OutgoingFriendRequest,
)
from friendgraph.services import user_service
from friendgraph.services.friendship_service import FriendshipService

router = APIRouter(prefix="/friendships", tags=["friendships"])


@router.post("/requests", response_model=FriendRequestResponse, status_code=201)
async def send_friend_request(
    data: FriendRequestCreate,
    user: User = Depends(get_current_user),
    service: FriendshipService = Depends(get_friendship_service),
):
    return await service.submit(user.id, data.receiver_id)


@router.get("/requests/incoming", response_model=list[IncomingFriendRequest])
async def incoming_requests(
    user: User = Depends(get_current_user),
    service: FriendshipService = Depends(get_friendship_service),
):
    return await service.list_incoming(user.id)


@router.get("/requests/outgoing", response_model=list[OutgoingFriendRequest])
async def outgoing_requests(
    user: User = Depends(get_current_user),
    service: FriendshipService = Depends(get_friendship_service),
):
    return await service.list_outgoing(user.id)


@router.put("/requests/{request_id}", response_model=FriendRequestAnswerResponse)
async def answer_friend_request(
    request_id: int,
    data: FriendRequestAnswer,
    user: User = Depends(get_current_user),
    service: FriendshipService = Depends(get_friendship_service),
):
    friendship = await service.respond(request_id, user.id, data.status)
    return {"status": data.status, "friendship": friendship}


@router.get("", response_model=list[FriendResponse])
async def list_friends(
    user: User = Depends(get_current_user),
    service: FriendshipService = Depends(get_friendship_service),
):
    return await service.list_friends(user.id)


@router.put("/status")
async def update_online_status(
    data: OnlineStatusUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Presence flag only; nothing is broadcast."""
    if not await user_service.update_online_status(db, user.id, data.is_online):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return {"success": True}


@router.delete("/{friend_id}")
async def remove_friend(
    friend_id: uuid.UUID,
    user: User = Depends(get_current_user),
    service: FriendshipService = Depends(get_friendship_service),
):
    await service.remove(user.id, friend_id)
    return {"success": True}
