"""Collaborator protocols shared across packages."""
