"""Conversion between records and documents."""
