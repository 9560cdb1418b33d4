"""Gemini Tasks: a personal to-do list backed by Supabase, with optimistic local sync."""

__version__ = "0.1.0"
