"""ASGI application with Socket.IO integration."""

import socketio

from support_chat.main import create_app
from support_chat.sockets.server import sio

# Create FastAPI app
fastapi_app = create_app()

# Socket.IO handles /socket.io/* routes, FastAPI handles everything else
app = socketio.ASGIApp(
    sio,
    other_asgi_app=fastapi_app,
    socketio_path="/socket.io",
)
