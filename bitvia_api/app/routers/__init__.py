"""API routers."""

from bitvia_api.schemas.responses import ErrorResponse

# OpenAPI documentation of the error envelope shared by the /api routes
ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Malformed address, txid, hash or output index"},
    404: {"model": ErrorResponse, "description": "Unknown transaction or block"},
    502: {"model": ErrorResponse, "description": "Node or indexer unavailable or returned an error"},
}
