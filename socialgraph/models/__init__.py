from socialgraph.models.user import User
from socialgraph.models.friendship import Friendship, FriendshipStatus
from socialgraph.models.subscription import Subscription
from socialgraph.models.post import Post, Image
from socialgraph.models.message import Message

__all__ = ["User", "Friendship", "FriendshipStatus", "Subscription", "Post", "Image", "Message"]
