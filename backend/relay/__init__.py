"""Jira <-> Discord relay service."""
