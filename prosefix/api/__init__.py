"""HTTP API for the Prosefix workbench."""
