"""HTTP surface: routers, request/response schemas and dependency providers."""
