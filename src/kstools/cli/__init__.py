"""Command-line interface for kstools."""
