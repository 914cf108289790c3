"""HTTP routes for the gatekeeper application."""
