"""Configuration schemas and parsers."""
