"""Connector implementations, one package per backend type."""
