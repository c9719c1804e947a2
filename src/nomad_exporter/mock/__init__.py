"""Simulated Nomad cluster for development and tests."""
