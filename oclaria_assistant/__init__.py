"""Oclaria sales assistant backend."""

__version__ = "0.1.0"
