"""Bundled form documents, one sub-package per form."""
