"""
API routers package
"""

from relay.routers.codes import router as codes_router
from relay.routers.messages import router as messages_router
