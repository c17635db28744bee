"""Bridge that runs a coding-assistant CLI for remote agents and reports back."""

__version__ = "0.4.0"
