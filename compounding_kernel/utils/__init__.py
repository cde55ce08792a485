"""Shared pure helpers."""
