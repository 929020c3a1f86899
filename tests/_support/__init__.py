"""Test support helpers (scripted fakes for the collaborator protocols)."""
