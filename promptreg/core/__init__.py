"""Bundle installation and consistency engine."""
