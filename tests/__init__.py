"""Tests package for the LBP simulation.

Covers the weighted pool math, demand curves, the step engine, full runs,
checkpoint projections, host dispatch, metrics and historical comparison.
Tests run without pytest through ``tests/run_tests.py``.
"""
