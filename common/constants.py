"""Project-wide constants (relay size limits, default timeouts, ports)."""

RELAY_MAX_OBJECT_BYTES: int = 2 * 1024 * 1024 * 1024  # 2 GiB hard cap per relay object
DEFAULT_MAX_PART_SIZE_BYTES: int = int(1.9 * 1024 * 1024 * 1024)  # headroom below the cap

DEFAULT_UPLOAD_TIMEOUT_SECONDS: float = 300.0
DEFAULT_DOWNLOAD_TIMEOUT_SECONDS: float = 300.0
DEFAULT_PART_RETRIES: int = 1
DEFAULT_SEARCH_LIMIT: int = 10

COPY_BUFFER_BYTES: int = 1024 * 1024
STREAM_PIECE_SIZE_BYTES: int = 1024 * 1024

DEFAULT_RELAY_ADDRESS: str = "relay:50061"
RELAY_RPC_TIMEOUT_SECONDS: float = 30.0
GRPC_KEEPALIVE_TIME_MS: int = 30000
GRPC_KEEPALIVE_TIMEOUT_MS: int = 10000

SERVICE_PORT: int = 8000
TEMP_DIR_NAME: str = "telestore_temp"
