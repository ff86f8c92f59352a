"""Session resolution for realtime connections."""
