"""Builder Bridge: credential broker between Shopify admin sessions and the 3D builder."""

__version__ = "1.0.0"
