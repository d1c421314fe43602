"""Shared utilities for arrowduck."""
