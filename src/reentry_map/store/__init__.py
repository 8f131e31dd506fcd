"""Data store package for Reentry Map.

Relational persistence for resource suggestions, published resources and the
append-only verification audit trail, built on SQLAlchemy Core tables.
"""
