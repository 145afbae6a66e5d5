"""chapterdesk — content revision and approval workflow for community chapters."""

__version__ = "0.1.0"
