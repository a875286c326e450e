"""Shared libraries used by the NorthStar services."""
