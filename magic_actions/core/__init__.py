"""Application wiring: engine, lifespan, middleware, error mapping."""
