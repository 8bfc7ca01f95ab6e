"""Ingestion pipelines: documents, member matching, calendar sync, survey parsing.

Each step is callable independently so the API routes and scripts can share it.
"""
