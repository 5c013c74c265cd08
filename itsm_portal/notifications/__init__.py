"""
Notifications Module
====================

Bounded Context for chat-message notifications.

Responsibilities:
- Create a notification when a session message arrives for a user
- Push new notifications to subscribers over the change feed
- List unread notifications and mark them read
- Keep a client-side unread inbox with optimistic mark-read
"""

__version__ = "1.0.0"
