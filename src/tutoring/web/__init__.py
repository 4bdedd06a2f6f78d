"""Web API: FastAPI app factory, middleware, error envelope and routers."""
