"""Persistence layer shared by the reputest services."""
