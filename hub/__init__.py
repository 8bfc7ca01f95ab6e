"""Backend package: settings, DB models, pipelines, API.

This package orchestrates document ingestion, itinerary extraction, family
member matching, calendar sync, and survey response parsing.
"""
