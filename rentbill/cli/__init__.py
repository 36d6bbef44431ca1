"""Command-line tools for billing operators."""
