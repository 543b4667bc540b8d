"""Landslide / non-landslide dataset preparation and susceptibility modelling for Nepal."""

__version__ = "0.1.0"
