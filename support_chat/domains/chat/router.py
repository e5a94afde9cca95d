"""Chat API router - support chat and message endpoints."""

from fastapi import APIRouter, File, Form, Response, UploadFile

from support_chat.core.config import settings
from support_chat.core.exceptions import FileTooLargeError
from support_chat.dependencies.auth import CurrentViewer
from support_chat.dependencies.services import ChatServiceDep, RequestContextDep
from support_chat.domains.chat.schemas import (
    ApiResponse,
    ChatCreate,
    ChatStatistics,
    ChatStatusUpdate,
    ChatView,
    MessageCreate,
    PublicChatCreate,
    PublicMessageCreate,
    UnreadCountResponse,
)

router = APIRouter()


async def _read_upload(file: UploadFile) -> bytes:
    """Read an upload, stopping one byte past the size limit."""
    max_bytes = settings.max_upload_size_bytes

    size = file.size
    if size is None or size <= max_bytes:
        data = await file.read(max_bytes + 1)
        size = len(data)
        if size <= max_bytes:
            return data

    raise FileTooLargeError(
        max_size_mb=settings.max_upload_size_mb,
        actual_size_mb=round(size / (1024 * 1024), 2),
    )


# ============================================================
# Public endpoints (chat widget, no authentication)
# ============================================================


@router.post("/public", response_model=ApiResponse[ChatView], status_code=201)
async def create_public_chat(
    data: PublicChatCreate,
    service: ChatServiceDep,
    context: RequestContextDep,
):
    """
    Open a chat without logging in.

    The guest is matched to (or provisioned as) a user by email. Each call
    opens a new chat.
    """
    chat = await service.create_public_session(data, context)
    return ApiResponse(data=chat)


@router.post("/public/{pk}/messages", response_model=ApiResponse[ChatView])
async def send_public_message(
    pk: str,
    data: PublicMessageCreate,
    service: ChatServiceDep,
):
    """Reply to a chat as its customer, without logging in."""
    chat = await service.append_public_message(pk, data)
    return ApiResponse(data=chat)


# ============================================================
# Authenticated endpoints
# ============================================================


@router.get("", response_model=ApiResponse[list[ChatView]])
async def list_chats(
    viewer: CurrentViewer,
    service: ChatServiceDep,
):
    """
    List chats: every chat for admins, own chats for users.

    Unread counts are not refreshed here; they change when a chat is opened.
    """
    chats = await service.list_chats(viewer)
    return ApiResponse(data=chats, count=len(chats))


@router.post("", response_model=ApiResponse[ChatView], status_code=201)
async def create_chat(
    data: ChatCreate,
    viewer: CurrentViewer,
    service: ChatServiceDep,
    context: RequestContextDep,
    response: Response,
):
    """
    Open a chat, or add the message to the requester's active chat.

    Returns 201 when a chat was created and 200 when the message was appended.
    """
    chat, created = await service.create_or_append(viewer, data, context)
    response.status_code = 201 if created else 200
    return ApiResponse(data=chat)


@router.get("/stats", response_model=ApiResponse[ChatStatistics])
async def get_chat_stats(
    viewer: CurrentViewer,
    service: ChatServiceDep,
):
    """Dashboard statistics. Admin only."""
    stats = await service.get_stats(viewer)
    return ApiResponse(data=stats)


@router.get("/{pk}", response_model=ApiResponse[ChatView])
async def get_chat(
    pk: str,
    viewer: CurrentViewer,
    service: ChatServiceDep,
):
    """
    Get a chat with its full history.

    Marks every message as read for the requester.
    """
    chat = await service.get_chat(viewer, pk)
    return ApiResponse(data=chat)


@router.get("/{pk}/unread-count", response_model=ApiResponse[UnreadCountResponse])
async def get_unread_count(
    pk: str,
    viewer: CurrentViewer,
    service: ChatServiceDep,
):
    """Unread message count of a chat for the requester."""
    count = await service.unread_count(viewer, pk)
    return ApiResponse(data=UnreadCountResponse(chat_id=pk, unread_count=count))


@router.post("/{pk}/messages", response_model=ApiResponse[ChatView])
async def send_message(
    pk: str,
    data: MessageCreate,
    viewer: CurrentViewer,
    service: ChatServiceDep,
):
    """Send a message to a chat."""
    chat = await service.append_message(viewer, pk, data)
    return ApiResponse(data=chat)


@router.post("/{pk}/messages/file", response_model=ApiResponse[ChatView])
async def send_message_with_file(
    pk: str,
    viewer: CurrentViewer,
    service: ChatServiceDep,
    file: UploadFile = File(...),
    content: str = Form(""),
):
    """Send a message with a file attachment (multipart form)."""
    data = await _read_upload(file)
    chat = await service.append_message_with_attachment(
        viewer,
        pk,
        content=content,
        data=data,
        filename=file.filename or "upload",
        mimetype=file.content_type or "application/octet-stream",
    )
    return ApiResponse(data=chat)


@router.put("/{pk}/status", response_model=ApiResponse[ChatView])
async def update_chat_status(
    pk: str,
    data: ChatStatusUpdate,
    viewer: CurrentViewer,
    service: ChatServiceDep,
):
    """Update chat status and/or assignee. Admin only."""
    chat = await service.update_status(viewer, pk, data)
    return ApiResponse(data=chat)
