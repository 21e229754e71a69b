"""Ordering bounded context: carts, stock reservation and orders."""
