"""Hydrogen-like orbital sampling, density grids and their caches."""
__version__ = "0.1.0"
