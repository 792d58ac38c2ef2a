"""Decision structure and lifecycle."""
