"""
S3 Upload Configuration.
Constants for multipart upload and read buffer settings.
"""

# Multipart Upload Settings
MULTIPART_THRESHOLD = 8 * 1024 * 1024   # boto3 default; smaller objects go in one PUT
MULTIPART_CHUNKSIZE = 8 * 1024 * 1024   # 8MB per part
MAX_CONCURRENCY = 1                     # Serial uploads (predictable memory usage)

# Local file read buffer (assembly and streaming to S3)
READ_CHUNK_SIZE = 1024 * 1024           # 1MB

# S3 listing hard limit per request
MAX_KEYS_PER_PAGE = 1000
