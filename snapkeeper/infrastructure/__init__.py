"""Filesystem persistence for companion snapshot files."""
