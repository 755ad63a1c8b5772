"""Relay services: store adapter, reconciler, broadcaster and host gateway."""
