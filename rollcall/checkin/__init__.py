"""Check-in validation: geofence, identity normalization, device markers, join pipeline."""
