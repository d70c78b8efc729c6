"""Terminal user interface for livevoice."""
