"""Reporting on computed staking rewards."""
