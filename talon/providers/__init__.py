"""Concrete adapters for the interfaces in :mod:`talon.interfaces`."""
