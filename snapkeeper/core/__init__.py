"""Snapshot matching, values and inline patching."""
