"""Run coding agents on isolated git branches and merge their work back."""

__version__ = "0.1.0"
