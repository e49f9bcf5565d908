"""Bundled workflow definition files."""
