# remixtree/clients/__init__.py
from .comment_feed import CommentFeedClient, has_in_flight

__all__ = ['CommentFeedClient', 'has_in_flight']
