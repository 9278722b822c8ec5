"""Compliance verification service: self-exclusion checks and identity journeys."""

__version__ = "1.0.0"
