from fastapi import status


class FriendshipError(Exception):
    """Base for expected relationship errors.

    Subclasses set a default ``detail`` and the HTTP ``status_code`` the error
    handler responds with. A detail passed at raise time replaces the default.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Friendship operation failed"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class SelfRequestError(FriendshipError):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "You cannot send a friend request to yourself"


class AlreadyFriendsError(FriendshipError):
    status_code = status.HTTP_409_CONFLICT
    detail = "You are already friends with this user"


class DuplicateRequestError(FriendshipError):
    status_code = status.HTTP_409_CONFLICT
    detail = "You have already sent a friend request to this user"


class ReversePendingExistsError(FriendshipError):
    status_code = status.HTTP_409_CONFLICT
    detail = "This user has already sent you a friend request; respond to it instead"


class RequestNotRespondableError(FriendshipError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Friend request not found, not addressed to you, or already answered"


class FriendshipNotFoundError(FriendshipError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "No friendship with this user was found"


class StorePersistenceError(FriendshipError):
    """Store unreachable or returned something unusable. Safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Relationship store is unavailable, try again later"
