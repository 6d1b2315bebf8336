"""Domain layer - entities shared by every other layer."""
