"""Derived collections (schedules, todos, transactions) and reanalysis."""

from memosync.derived.collections import DerivedCollections
from memosync.derived.reanalysis import ReanalysisCoordinator

__all__ = ["DerivedCollections", "ReanalysisCoordinator"]
