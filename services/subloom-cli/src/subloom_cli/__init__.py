"""subloom-cli: Command-line interface for subloom."""

__version__ = "0.1.0"
