from socialgraph.services.identity import IdentityLookup, IdentityService
from socialgraph.services.friendship import FriendshipService
from socialgraph.services.subscription import SubscriptionService
from socialgraph.services.content import ContentService
from socialgraph.services.feed import FeedService
from socialgraph.services.messaging import MessagingService

__all__ = [
    "IdentityLookup", "IdentityService", "FriendshipService",
    "SubscriptionService", "ContentService", "FeedService", "MessagingService",
]
