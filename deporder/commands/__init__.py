"""Subcommand helpers for the deporder CLI."""
