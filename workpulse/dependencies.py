"""
FastAPI dependencies for the per-process delivery objects.

The registry, room manager, broker and push sender are built once in the
application lifespan (see ``workpulse.main``) and live on ``app.state``.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from workpulse.database import get_db
from workpulse.services.notifier import Notifier
from workpulse.services.push import PushSender
from workpulse.services.realtime import RoomManager
from workpulse.services.registry import SubscriptionRegistry


def get_registry(request: Request) -> SubscriptionRegistry:
    return request.app.state.registry


def get_rooms(request: Request) -> RoomManager:
    return request.app.state.rooms


def get_broker(request: Request):
    return request.app.state.broker


def get_push_sender(request: Request) -> PushSender:
    return request.app.state.push_sender


def get_notifier(
    db: AsyncSession = Depends(get_db),
    broker=Depends(get_broker),
    push_sender: PushSender = Depends(get_push_sender),
) -> Notifier:
    return Notifier(db, broker, push_sender)
