"""Outcome logging and its side effects."""
