"""Append-only comment threads on reviewable items."""

from chapterdesk.comments.thread import comment_thread

__all__ = ["comment_thread"]
