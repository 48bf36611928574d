"""
utilhub: identity resolution and weekly utilization consolidation.

Resolves which records of the utilization, staffing-plan and employee-master
feeds belong to the same person, propagates the canonical person id across
feeds, and merges the two weekly time series into one record per person-week.
"""

__version__ = "0.3.0"
