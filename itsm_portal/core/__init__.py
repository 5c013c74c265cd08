"""
Core Module
============

Shared core utilities and abstractions used across the application.

This module contains framework-agnostic code that defines the fundamental
building blocks of the system.
"""

from itsm_portal.core.exceptions import (
    ApplicationException,
    DomainException,
    RepositoryException,
    ValidationException,
    PermissionDeniedException,
    ResourceNotFoundException,
    InvalidTransitionException,
    ConfigurationException,
    ExternalServiceException,
)
from itsm_portal.core.clock import utcnow, ensure_utc

__all__ = [
    "ApplicationException",
    "DomainException",
    "RepositoryException",
    "ValidationException",
    "PermissionDeniedException",
    "ResourceNotFoundException",
    "InvalidTransitionException",
    "ConfigurationException",
    "ExternalServiceException",
    "utcnow",
    "ensure_utc",
]
