"""multipersona - switchable identity contexts for authenticated principals."""

__version__ = "1.0.0"
