"""
Service-wide constants
"""

SERVICE_NAME = "civil-service-leave-engine"
DEFAULT_VERSION = "1.0.0"

# Header carrying the authenticated employee id from the gateway
ACTOR_HEADER = "X-Actor-Id"
