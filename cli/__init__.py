"""CLI package for operating the pool occupancy logger."""
