"""Logging setup and structured error log for posprep."""
