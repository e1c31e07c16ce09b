"""Command-line interface for inspecting and holding directory locks."""
