from .poller import EventFeedPoller
from .state import FeedCursor, FeedState

__all__ = ["EventFeedPoller", "FeedCursor", "FeedState"]
