"""Scheduling, capacity and booking admission backend for the Ceramic Alma studio."""

__version__ = "0.1.0"
