"""Persistence layer for Notedeck."""
