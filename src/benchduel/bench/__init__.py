"""Benchmarking subsystem for benchduel.

Runs the same workload against two systems in separate worker
processes, aggregates the per-step measurements and compares the
candidate against the baseline.
"""
