"""Shared types, geo math and logging used across the tile server."""
