"""Service layer: scheduling, capacity, admission and admin mutations."""
