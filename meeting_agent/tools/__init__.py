"""Collaborator protocols and I/O schemas."""
