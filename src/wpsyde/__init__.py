"""WPSyde: registry packaging and install CLI for WordPress UI components."""

__version__ = "1.0.0"
