"""API route modules for the relay."""
