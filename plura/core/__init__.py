"""Configuration, errors, security and request dependencies."""
