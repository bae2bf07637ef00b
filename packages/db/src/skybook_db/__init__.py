"""Skybook persistence layer."""
