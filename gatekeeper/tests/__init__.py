"""Tests for the gatekeeper application as a whole."""
