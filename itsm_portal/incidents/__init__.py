"""
Incidents Module
================

Bounded Context for self-service incident (ticket) tracking.

Responsibilities:
- Create incidents from the self-service form
- Move incidents through their status lifecycle
- Stamp first-response and resolution times
- Aggregate per-user counts for the dashboard
- Collect satisfaction feedback on resolved incidents
"""

__version__ = "1.0.0"
