"""
Gateway services: the bridges between HTTP and the bus.
"""
from .gateway import Gateway

__all__ = ["Gateway"]
