"""Pipeline stages: account and ad resolution, insights fan-out."""
