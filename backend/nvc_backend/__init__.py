"""Profile sync and analytics backend for the NVC practice app."""
