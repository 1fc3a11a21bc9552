"""Server missions: shared cooperative objectives with tiered rewards."""
