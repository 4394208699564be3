"""Command line tools for entmapper."""
