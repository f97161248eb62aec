"""Ontology template reconciliation and synchronization engine."""

__version__ = "0.4.0"
