"""API-related constants."""

# HTTP Status Codes
HTTP_200_OK = 200
HTTP_204_NO_CONTENT = 204

# HTTP Headers
CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Request logging
MAX_USER_AGENT_LENGTH = 200

# Abort reasons
BODY_TOO_LARGE_REASON = "Request body too large"
CLIENT_DISCONNECTED_REASON = "Client disconnected"
