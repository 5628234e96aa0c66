"""Storefront backend.

A small e-commerce API:
- Users register / log in and receive a signed bearer token (JWT).
- Admins and vendors manage categories and products.
- Every authenticated user has their own shopping cart.

Storage is MongoDB (one collection per entity). See DESIGN.md for layout.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
