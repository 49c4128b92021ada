"""Staking rewards accounting for Oasis delegators."""
