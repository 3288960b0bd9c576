"""
TLSMux Constants Module
Framing constants and server configuration defaults.
"""

# Message terminators: NUL, LF, CR, EOT (^D)
TERMINATORS = b'\x00\n\r\x04'

# Buffer limits
DEFAULT_BUFFER_SIZE = 1024  # max message size per client
OVERFLOW_RESERVE = 4  # min free bytes required before a read

# Timeouts (in seconds)
SELECT_TIMEOUT = 1.0
TICK_INTERVAL = 60.0
DEFAULT_HANDSHAKE_TIMEOUT = 5.0
DEFAULT_WRITE_TIMEOUT = 10.0

# Clients are dropped once idle for this many heartbeat ticks
IDLE_TIMEOUT_TICKS = 10

# Server configuration
DEFAULT_PORT = 6666
DEFAULT_LISTEN_BACKLOG = 5
DEFAULT_MAX_CLIENTS = 32
