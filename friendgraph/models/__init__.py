from friendgraph.models.base import Base
from friendgraph.models.friendship import Friendship
from friendgraph.models.friendship_request import FriendshipRequest
from friendgraph.models.user import User

__all__ = [
    "Base",
    "Friendship",
    "FriendshipRequest",
    "User",
]
