"""Soil moisture diffusion and irrigation simulation."""

__version__ = "0.1.0"
