"""HTTP routes for the gateway service."""
