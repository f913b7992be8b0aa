from socialgraph.schemas.user import UserRef
from socialgraph.schemas.social import FriendshipResponse, SubscriptionResponse
from socialgraph.schemas.post import PostCreate, ImageCreate, PostResponse, ImageResponse
from socialgraph.schemas.message import MessageCreate, MessageResponse, ConversationSummary

__all__ = [
    "UserRef",
    "FriendshipResponse", "SubscriptionResponse",
    "PostCreate", "ImageCreate", "PostResponse", "ImageResponse",
    "MessageCreate", "MessageResponse", "ConversationSummary",
]
