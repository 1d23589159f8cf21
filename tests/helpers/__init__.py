"""Test helpers for snapkeeper."""
