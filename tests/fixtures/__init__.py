"""Shared deterministic test data for blobpod tests."""
