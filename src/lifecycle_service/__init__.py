"""Practice lifecycle service."""
