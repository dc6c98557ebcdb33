"""Shared helpers for :mod:`fx_keeper`."""
