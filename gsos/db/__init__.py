"""Durable audit store."""
