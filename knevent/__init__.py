"""Build, present, encode and send CloudEvents from the command line."""

__version__ = "0.1.0"