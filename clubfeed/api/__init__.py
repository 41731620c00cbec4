"""HTTP layer: dispatcher, routes, middleware and server."""
