"""Prosefix - local grammar correction and translation workbench.

Streams paragraph-level results from a locally running Ollama host back to
the browser as NDJSON, in original paragraph order.
"""

__version__ = "1.2.0"
