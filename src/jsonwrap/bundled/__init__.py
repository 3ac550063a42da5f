"""Bundled read-only documents, addressed by name through ``jsonwrap.bundled``."""
