from .user import User
from .notifications import Notification
from .friends.friends import Friend
from .friends.friend_requests import FriendRequest

__all__ = ["User", "Notification", "Friend", "FriendRequest"]
