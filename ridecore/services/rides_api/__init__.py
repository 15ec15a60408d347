"""HTTP/WebSocket API поездок."""
