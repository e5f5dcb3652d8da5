"""Synonymous substitution correlation from metagenomic read alignments."""

__version__ = "0.1.0"
