"""Reusable helpers shared by the jacocoverage tooling."""
