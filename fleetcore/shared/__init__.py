"""Utilities shared across compute, transport and upload code."""
