"""Configuration and control for Orvibo AllOne IR blasters."""

__version__ = "0.1.0"
