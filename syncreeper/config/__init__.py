"""Configuration — environment-driven settings and platform defaults."""
