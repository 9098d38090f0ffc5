"""FastAPI routes for the chat flow and image edits."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from controllers.chat_controller import delete_chat_session, edit_image, get_chat_session, send_chat_message

router = APIRouter()


class ChatPayload(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	message: str
	session_id: Optional[str] = Field(default=None, alias="sessionId")
	clear_history: bool = Field(default=False, alias="clearHistory")
	reference_image_url: Optional[str] = Field(default=None, alias="referenceImageUrl")
	web_search_options: Optional[Dict[str, Any]] = Field(default=None, alias="webSearchOptions")
	file_search_options: Optional[Dict[str, Any]] = Field(default=None, alias="fileSearchOptions")


class ImageEditPayload(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	previous_response_id: str = Field(alias="previousResponseId")
	prompt: str
	options: Optional[Dict[str, Any]] = None


@router.post("/chat-flow")
async def chat_flow_route(request: Request, payload: ChatPayload):
	"""Route one chat message through the orchestrator."""
	try:
		return await send_chat_message(
			request,
			payload.message,
			session_id=payload.session_id,
			clear_history=payload.clear_history,
			reference_image_url=payload.reference_image_url,
			web_search_options=payload.web_search_options,
			file_search_options=payload.file_search_options,
		)
	except HTTPException:
		raise
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc))
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/chat-flow/{session_id}")
async def get_chat_flow_route(request: Request, session_id: str):
	try:
		return await get_chat_session(request, session_id)
	except HTTPException:
		raise
	except KeyError as exc:
		raise HTTPException(status_code=404, detail=str(exc))
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/chat-flow/{session_id}")
async def delete_chat_flow_route(request: Request, session_id: str):
	try:
		return await delete_chat_session(request, session_id)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/images/edit")
async def edit_image_route(request: Request, payload: ImageEditPayload):
	"""Edit an earlier generated image by threading its response id."""
	try:
		return await edit_image(request, payload.previous_response_id, payload.prompt, payload.options)
	except HTTPException:
		raise
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc))
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
