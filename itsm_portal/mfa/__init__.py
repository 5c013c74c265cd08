"""
MFA Module
==========

Bounded Context for email one-time codes.

Responsibilities:
- Issue six-digit codes with a short expiry
- Dispatch codes through the transactional email function
- Verify and consume codes
"""

__version__ = "1.0.0"
