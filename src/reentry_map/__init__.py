"""reentry_map: verification and deduplication pipeline for Reentry Map.

This package decides whether submitted community-resource suggestions are
published, rejected or routed to an admin, while avoiding duplicate entries
and recording the provenance of every change.
"""
