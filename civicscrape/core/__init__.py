"""Scrape pipeline: Graph client, transformation, orchestration, import and export."""
