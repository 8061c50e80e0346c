"""Core machinery shared by every source."""
