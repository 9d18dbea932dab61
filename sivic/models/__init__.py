"""Data models for Sivic."""
