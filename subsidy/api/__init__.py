"""HTTP surface for the subsidy engine."""
