"""Bookstore backend: cache-aside repository layer over a relational store and Redis."""
