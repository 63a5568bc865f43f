"""Box — package manager for Neutron native modules."""

__version__ = "1.0.0"
