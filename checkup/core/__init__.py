"""
Core components of the audit engine.

Contains:
- Base classes for topics
- Data models (CheckOutcome, RunSummary, etc.)
- Normalizer, comparator and severity classifier
- Baseline store and interaction gate
"""
