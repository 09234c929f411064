"""
Database models for the short link service.

Links and their click activity live in the same datastore so the
activity -> link foreign key is enforced by the database itself.
"""

from .link import Link, LinkStatus
from .activity import Activity

__all__ = ["Link", "LinkStatus", "Activity"]
