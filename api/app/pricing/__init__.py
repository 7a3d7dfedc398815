"""Money helpers and the order pricing calculator."""
