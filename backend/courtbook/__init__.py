"""Court booking slot reservation service."""
