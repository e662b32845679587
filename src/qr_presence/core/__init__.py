"""Protocol primitives and configuration."""
