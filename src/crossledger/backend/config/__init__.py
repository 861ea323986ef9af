"""Versioned tax rule configuration."""
