"""Action catalog, eligibility, context resolution and dispatch."""
