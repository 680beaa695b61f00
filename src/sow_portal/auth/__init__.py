"""Roles, permissions and the persisted authentication state container."""
