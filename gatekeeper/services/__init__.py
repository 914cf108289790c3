"""Backing stores and external integrations for the gatekeeper service."""
