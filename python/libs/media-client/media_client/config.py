"""
Client-side upload constants.

Each request (chunk plus form fields) has to fit under the hosting
platform's ~4.5MB body ceiling, hence 4MB for both the single-shot threshold
and the chunk size.
"""

SIMPLE_UPLOAD_THRESHOLD = 4 * 1024 * 1024  # Files <= this go in one request
CHUNK_SIZE = 4 * 1024 * 1024

# Endpoints (relative to the service base URL)
SIMPLE_UPLOAD_ENDPOINT = "/api/upload"
CHUNK_UPLOAD_ENDPOINT = "/api/upload-chunk"

# HTTP
REQUEST_TIMEOUT_SECONDS = 120.0
