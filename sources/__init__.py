"""Candidate sources and decision persistence."""

from .base_provider import Candidate, CandidateProvider, StaticProvider
from .cataas_source import CataasSource, parse_candidate
from .decision_store import DecisionRecord, DecisionStore
from .favorites_export import export_favorites, load_exported_favorites

__all__ = [
    'Candidate', 'CandidateProvider', 'StaticProvider',
    'CataasSource', 'parse_candidate',
    'DecisionRecord', 'DecisionStore',
    'export_favorites', 'load_exported_favorites',
]
