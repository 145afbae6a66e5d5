"""Revision, diff, and approval workflow."""

from chapterdesk.review.submissions import submission_review
from chapterdesk.review.workflow import content_workflow

__all__ = ["content_workflow", "submission_review"]
