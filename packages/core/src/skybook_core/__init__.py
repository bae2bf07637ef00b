"""Skybook core: error taxonomy and shared schemas."""
