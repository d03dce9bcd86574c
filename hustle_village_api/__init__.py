"""
Top‑level package for the HustleVillage API.

This file makes ``hustle_village_api`` a Python package so that
modules within ``app`` can be imported using fully qualified names
like ``hustle_village_api.app.main``.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []
