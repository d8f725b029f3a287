"""Agent session lifecycle, capability boundary and action interpreter."""
