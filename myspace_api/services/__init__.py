from .user_service import get_user_by_id, create_profile, get_me
from .friends_service import (
    canonical_pair,
    materialize_friendship,
    send_friend_request,
    respond_to_friend_request,
    remove_friend,
    get_friends,
    get_friend_ids,
)
from .notification_service import NotificationPublisher, deliver_notification

__all__ = ["get_user_by_id", "create_profile", "get_me", "canonical_pair", "materialize_friendship", "send_friend_request", "respond_to_friend_request", "remove_friend", "get_friends", "get_friend_ids", "NotificationPublisher", "deliver_notification"]
