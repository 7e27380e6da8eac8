"""Validation, execution, orchestration and policy components."""
