"""Stream image generation over a websocket."""
from __future__ import annotations

import json
from typing import Any, Dict

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from services.openai.image_options import ImageOptions
from services.openai.openai_handler import OpenAIHandler


class ImageStreamHandler:
	"""Dispatch websocket messages for streamed image generation."""

	def __init__(self, handler: OpenAIHandler) -> None:
		self.handler = handler

	async def handle(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		"""Process a single inbound websocket payload."""
		request_id = payload.get("request_id")
		try:
			if payload.get("type") != "image.generate":
				raise ValueError("Unsupported message type.")
			result = await self._generate(websocket, request_id, payload)
			await self._send(websocket, result)
		except WebSocketDisconnect:
			raise
		except Exception as exc:
			await self._send(websocket, {"type": "error", "request_id": request_id, "detail": str(exc)})

	async def _generate(self, websocket: WebSocket, request_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
		prompt = (payload.get("prompt") or "").strip()
		if not prompt:
			raise ValueError("Prompt is required.")
		options = ImageOptions.from_dict(payload.get("options"))
		if not options.partial_images:
			options.partial_images = 2

		async def on_partial(index: int, image_b64: str) -> None:
			await self._send(
				websocket,
				{"type": "image.partial", "request_id": request_id, "index": index, "image_b64": image_b64},
			)

		result = await self.handler.generate_image_stream(prompt, options, on_partial)
		return {
			"type": "image.completed",
			"request_id": request_id,
			"image_b64": result.image_base64,
			"revised_prompt": result.revised_prompt,
			"response_id": result.response_id,
			"structured_data": result.structured_data,
		}

	async def _send(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		await websocket.send_text(json.dumps(payload))
