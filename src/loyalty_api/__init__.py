"""Loyalty rewards API package."""
