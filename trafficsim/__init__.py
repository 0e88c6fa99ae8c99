"""Lane-based road traffic simulation with intersections, reservations and traffic lights."""

__version__ = "0.1.0"
__all__ = ["__version__"]