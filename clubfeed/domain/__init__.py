"""Normalized feed models and selection rules."""
