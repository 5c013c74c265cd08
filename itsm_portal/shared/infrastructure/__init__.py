"""
Shared Infrastructure
=====================

Structured JSON logging used by every module.
"""
