"""Command-line interface for the model server client."""
