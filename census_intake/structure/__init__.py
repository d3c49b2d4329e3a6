"""Structural analysis of extracted grids."""

from census_intake.structure.analyzer import StructureAnalyzer, employee_likeness

__all__ = ["StructureAnalyzer", "employee_likeness"]
