"""Bootforge CLI subcommands."""
