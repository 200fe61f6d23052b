"""Probe executors and the diagnostic runners built on them."""
