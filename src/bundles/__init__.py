"""Bundled script discovery inside restored packages."""

from .resolver import BundledScriptResolver, EntryPointSelection, bucket_of

__all__ = ["BundledScriptResolver", "EntryPointSelection", "bucket_of"]
