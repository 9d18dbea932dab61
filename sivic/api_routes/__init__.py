"""API routes for the Sivic server."""
