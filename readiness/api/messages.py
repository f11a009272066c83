"""
Messaging API endpoints and the realtime WebSocket feed
"""
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
from typing import List
import asyncio
import logging

from readiness.api.deps import get_broker, get_session, require_tpo
from readiness.config import settings
from readiness.database import get_db
from readiness.schemas.messages import Conversation, MessageCreate, MessageOut, UnreadCount
from readiness.services.message_service import MESSAGES_TABLE, message_service
from readiness.services.session_store import SessionContext
from readiness.utils.realtime import RealtimeBroker, Subscription

router = APIRouter(prefix="/api", tags=["messages"])
logger = logging.getLogger(__name__)

REALTIME_TABLES = {MESSAGES_TABLE}


@router.post("/messages", response_model=MessageOut, status_code=201)
async def send_message(
    request: MessageCreate,
    session: SessionContext = Depends(get_session),
    broker: RealtimeBroker = Depends(get_broker),
    db: Session = Depends(get_db),
):
    """
    Send a message

    - Students write to the TPO desk unless a recipient is given
    - TPO staff must name the student
    """
    recipient = request.recipient_username
    if not recipient:
        if session.is_tpo:
            raise HTTPException(status_code=422, detail="recipientUsername is required")
        recipient = settings.DEFAULT_TPO_USERNAME
    if recipient == session.username:
        raise HTTPException(status_code=422, detail="Cannot message yourself")
    
    message = message_service.send(db, session, recipient, request.content)
    broker.publish(MESSAGES_TABLE, message.to_event())
    return message


@router.get("/messages/conversations", response_model=List[Conversation])
async def list_conversations(
    session: SessionContext = Depends(require_tpo),
    db: Session = Depends(get_db),
):
    """Students with their last message and unread count, newest first"""
    return message_service.conversations(db, session.username)


@router.get("/messages/thread/{username}", response_model=List[MessageOut])
async def get_thread(
    username: str,
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Messages between me and `username`, oldest first; theirs are marked read"""
    return message_service.thread(db, session.username, username)


@router.get("/messages/unread-count", response_model=UnreadCount)
async def unread_count(
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    return UnreadCount(count=message_service.unread_count(db, session.username))


async def _forward(websocket: WebSocket, events: Subscription, username: str) -> None:
    async for row in events:
        if username in (row.get("sender_username"), row.get("recipient_username")):
            await websocket.send_json({"type": "INSERT", "table": events.table, "record": row})


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


@router.websocket("/realtime/{table}")
async def realtime_feed(websocket: WebSocket, table: str, token: str = Query(...)):
    """
    Live row inserts for one table

    Authenticates with `?token=`; only rows the user sent or received are
    forwarded.
    """
    session = websocket.app.state.sessions.get(token)
    if session is None or table not in REALTIME_TABLES:
        await websocket.close(code=4403)
        return
    
    broker: RealtimeBroker = websocket.app.state.broker
    subscription = broker.subscribe(table)
    await websocket.accept()
    logger.info(f"Realtime feed opened: {session.username} on {table}")
    
    async with subscription as events:
        forwarder = asyncio.create_task(_forward(websocket, events, session.username))
        receiver = asyncio.create_task(_wait_for_disconnect(websocket))
        done, pending = await asyncio.wait({forwarder, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if task.exception() is not None and not isinstance(task.exception(), WebSocketDisconnect):
                logger.error(f"Realtime feed error for {session.username}: {task.exception()}")
    
    logger.info(f"Realtime feed closed: {session.username} on {table}")
