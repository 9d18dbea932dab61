"""Utility helpers for Sivic."""
