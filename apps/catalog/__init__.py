"""Catalog app package.

Holds the Family and Child records. ``Child.status`` is the single
authoritative availability flag; every change to it goes through the
guarded transition in :mod:`apps.catalog.guards`.
"""
