"""Sliding-window rate limiting with pluggable storage."""
