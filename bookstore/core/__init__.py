"""Core: settings, constants, and the infrastructure container."""
