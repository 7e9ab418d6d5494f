# -*- coding: utf-8 -*-
"""Enhanced QR code FastMCP server package."""

__version__ = "1.0.0"
__all__ = ["__version__"]
