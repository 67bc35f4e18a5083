"""Rendering of expression trees back to source text."""

from .deparser import Deparser, deparse, format_name

__all__ = ['Deparser', 'deparse', 'format_name']
