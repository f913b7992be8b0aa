"""Social graph and content distribution core.

Friend requests, follow subscriptions, posts with images, the follow feed
and private messaging, over a single async SQLAlchemy store.
"""

__version__ = "1.0.0"
