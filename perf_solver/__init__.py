"""Recover a plaintext accepted by a binary from its instruction counts."""

__version__ = "0.1"
