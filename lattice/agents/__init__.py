"""Executors, their capability declarations and the registry that matches tasks to them."""
