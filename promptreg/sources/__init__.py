"""Bundle sources: where extracted bundles come from."""
