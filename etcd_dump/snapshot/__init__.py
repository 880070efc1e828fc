"""Snapshot pipeline."""
