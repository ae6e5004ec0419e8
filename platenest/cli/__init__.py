"""Command-line interface for platenest."""
