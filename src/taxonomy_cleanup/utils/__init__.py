"""Shared utilities for the taxonomy cleanup pipeline."""
