"""Project package for the weaponStats Django settings."""
