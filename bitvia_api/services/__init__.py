"""Resolution and aggregation services behind the API endpoints."""
