"""Pantry tracking and recipe sharing backend."""
