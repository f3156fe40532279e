"""Command-line interface for wdlf-toolkit."""
