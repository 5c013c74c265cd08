"""
Infrastructure Layer
=====================

Low-level technical concerns shared by all modules:
- Database connection management
- Realtime change feed (push subscriptions on table changes)
"""
