"""LVS configuration model, codec, ramp-up and reconciliation."""
