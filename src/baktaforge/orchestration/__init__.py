"""Workload orchestration."""
