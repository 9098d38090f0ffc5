"""WebSocket endpoint for streamed image generation."""

from __future__ import annotations

import json

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.openai.openai_handler import OpenAIHandler
from services.realtime.ws_image import ImageStreamHandler

router = APIRouter()


@router.websocket("/ws/images")
async def image_socket(websocket: WebSocket):
	"""Stream partial and final images for `image.generate` requests."""
	await websocket.accept()
	config = websocket.app.state.ai_config
	handler = ImageStreamHandler(OpenAIHandler(websocket.app.state.openai_client, config.openai))
	while True:
		try:
			raw = await websocket.receive_text()
		except WebSocketDisconnect:
			break
		try:
			payload = json.loads(raw)
		except ValueError:
			await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be JSON"}))
			continue
		if not isinstance(payload, dict):
			await websocket.send_text(json.dumps({"type": "error", "detail": "Payload must be a JSON object"}))
			continue
		try:
			await handler.handle(websocket, payload)
		except WebSocketDisconnect:
			break
