"""HTTP surface: thin FastAPI routers over the core components."""
