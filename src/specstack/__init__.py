"""Stacked branch tracking across one or many repositories."""
