"""
FastAPI WebSocket server for the Diamonds trial.

Every connection runs its own PhaseCoordinator against the shared store and
a push task that sends that connection a personalized state whenever the
store changes.
"""

import asyncio
import logging
import os
import uuid
from typing import Dict, Optional

import orjson
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from ..actions import (
    commit_slots, pause, pick_card, refresh_hand, resume, save_draft,
    skip_pick, start_session, stop_session, use_detector,
)
from ..bots.base import perform
from ..bots.greedy import GreedyBot
from ..collaborators import Identity, InMemoryDirectory, InMemoryProfileStore
from ..constants import ROLE_MASTER, ROLE_PLAYER
from ..coordinator import PhaseCoordinator
from ..diff import compute_diff, should_send_full_state
from ..errors import StoreError
from ..repository import SessionRepository
from ..rules import create_rules
from ..serialization import sanitize_state
from ..store import InMemoryStore
from .events import (
    CommitSlotsEvent, DetectorEvent, ErrorCode, JoinEvent, PauseEvent,
    RefreshEvent, RequestStateEvent, ResumeEvent, SaveDraftEvent,
    SkipStealEvent, StartEvent, StealEvent, StopEvent, create_detector_event,
    create_error_event, create_join_success_event, create_state_full_event,
    create_state_patch_event, parse_inbound_event, to_error_code,
)

logger = logging.getLogger(__name__)

SESSION_ID = os.environ.get("DIAMONDS_SESSION_ID", "diamonds")
MASTER_TOKEN = os.environ.get("DIAMONDS_MASTER_TOKEN", "master")
BOT_DELAY = 0.5

# FastAPI app
app = FastAPI(title="Diamonds Trial Engine", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global state
rules = create_rules(auto_fill_bots=os.environ.get("DIAMONDS_AUTO_BOTS", "false").lower() == "true")
store = InMemoryStore()
repo = SessionRepository(store, SESSION_ID)
directory = InMemoryDirectory()
profiles = InMemoryProfileStore()
connection_identities: Dict[WebSocket, Identity] = {}
last_sent: Dict[WebSocket, Dict] = {}
bot_tasks: Dict[str, asyncio.Task] = {}


async def send_event(websocket: WebSocket, event):
    await websocket.send_text(orjson.dumps(event.model_dump(mode="json")).decode())


async def send_error(websocket: WebSocket, code: ErrorCode, message: str):
    await send_event(websocket, create_error_event(code, message))


async def build_view(identity: Optional[Identity]) -> Dict:
    """Sanitized state for one viewer (masters and spectators see no hand)."""
    state = await repo.ensure_state()
    viewer_id = identity.player_id if identity else None
    hand = await repo.load_hand(viewer_id) if viewer_id else None
    slots = await repo.load_slots(state.round)
    return sanitize_state(state, viewer_id, hand, slots)


async def send_state(websocket: WebSocket, force_full: bool = False):
    """Send a patch against the last state this connection saw, or a full state."""
    new_view = await build_view(connection_identities.get(websocket))
    old_view = last_sent.get(websocket)
    ops = compute_diff(old_view, new_view)

    if force_full or old_view is None or should_send_full_state(ops):
        await send_event(websocket, create_state_full_event(new_view))
    elif ops:
        await send_event(websocket, create_state_patch_event(new_view["version"], ops))
    last_sent[websocket] = new_view


async def push_updates(websocket: WebSocket):
    """Forward store changes to one connection."""
    queue = store.subscribe()
    try:
        while True:
            await queue.get()
            while not queue.empty():
                queue.get_nowait()
            if websocket in connection_identities:
                try:
                    await send_state(websocket)
                except StoreError as e:
                    logger.warning(f"Skipping push, store unavailable: {e.message}")
    finally:
        store.unsubscribe(queue)


async def drive_bot(bot: GreedyBot):
    """Let a bot seat act whenever the store changes."""
    queue = store.subscribe()
    try:
        while True:
            try:
                await asyncio.wait_for(queue.get(), timeout=rules.tick_interval)
            except asyncio.TimeoutError:
                pass
            await asyncio.sleep(BOT_DELAY)
            try:
                result = await perform(repo, bot)
            except StoreError as e:
                logger.warning(f"Bot {bot.player_id} skipped a turn: {e.message}")
                continue
            if result is not None and not result.success:
                logger.warning(f"Bot {bot.player_id} action failed: {result.error_message}")
    except asyncio.CancelledError:
        logger.info(f"Bot automation cancelled for {bot.player_id}")
        raise
    finally:
        store.unsubscribe(queue)


def stop_bots():
    """Cancel every bot driver, on session reset or shutdown."""
    for task in bot_tasks.values():
        task.cancel()
    bot_tasks.clear()


@app.on_event("shutdown")
async def shutdown():
    stop_bots()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "session": SESSION_ID,
        "connections": len(connection_identities),
    }


@app.get("/state")
async def public_state():
    """Spectator view of the session."""
    return await build_view(None)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Main WebSocket endpoint."""
    await websocket.accept()
    logger.info("WebSocket connection accepted")

    coordinator = PhaseCoordinator(repo, rules, registry=directory, profiles=profiles)
    tasks = [
        asyncio.create_task(coordinator.run()),
        asyncio.create_task(push_updates(websocket)),
    ]

    try:
        while True:
            raw_data = await websocket.receive_text()
            try:
                event = parse_inbound_event(orjson.loads(raw_data))
                await handle_event(websocket, event)
            except ValueError as e:
                await send_error(websocket, ErrorCode.INVALID_EVENT, str(e))
            except StoreError as e:
                await send_error(websocket, ErrorCode.STORE_UNAVAILABLE, e.message)
            except WebSocketDisconnect:
                raise
            except Exception as e:
                logger.exception(f"Error handling event: {e}")
                await send_error(websocket, ErrorCode.INTERNAL, "Internal server error")
    except WebSocketDisconnect:
        logger.info("WebSocket disconnected")
    finally:
        coordinator.stop()
        for task in tasks:
            task.cancel()
        identity = connection_identities.pop(websocket, None)
        last_sent.pop(websocket, None)
        if identity:
            logger.info(f"Player {identity.player_id} disconnected")


async def handle_event(websocket: WebSocket, event):
    """Handle an inbound event."""
    if isinstance(event, JoinEvent):
        await handle_join(websocket, event)
        return

    identity = connection_identities.get(websocket)
    if identity is None:
        await send_error(websocket, ErrorCode.NOT_JOINED, "Join before sending events")
        return

    if isinstance(event, RequestStateEvent):
        await send_state(websocket, force_full=True)
        return

    player_id = identity.player_id
    if isinstance(event, SaveDraftEvent):
        result = await save_draft(repo, player_id, event.slots)
    elif isinstance(event, CommitSlotsEvent):
        result = await commit_slots(repo, player_id, event.slots)
    elif isinstance(event, RefreshEvent):
        result = await refresh_hand(repo, player_id)
    elif isinstance(event, DetectorEvent):
        result = await use_detector(repo, player_id)
        if result.success:
            await send_event(websocket, create_detector_event(result.data["hand_sizes"]))
    elif isinstance(event, StealEvent):
        result = await pick_card(repo, player_id, event.card_id)
    elif isinstance(event, SkipStealEvent):
        result = await skip_pick(repo, player_id)
    elif isinstance(event, StartEvent):
        result = await start_session(repo, identity)
    elif isinstance(event, StopEvent):
        result = await stop_session(repo, identity)
        if result.success:
            stop_bots()
    elif isinstance(event, PauseEvent):
        result = await pause(repo, identity)
    elif isinstance(event, ResumeEvent):
        result = await resume(repo, identity)
    else:
        raise ValueError(f"Unhandled event type: {type(event)}")

    if not result.success:
        await send_error(websocket, to_error_code(result.error_code), result.error_message)
        return
    await send_state(websocket)


async def handle_join(websocket: WebSocket, event: JoinEvent):
    """Resolve or register the token and attach the identity to this connection."""
    identity = await directory.resolve(event.token)
    if identity is None:
        role = ROLE_MASTER if event.token == MASTER_TOKEN else ROLE_PLAYER
        identity = directory.register(event.token, Identity(
            player_id=uuid.uuid4().hex[:8],
            display_name=event.name,
            role=role,
            is_bot=event.is_bot,
        ))

    if identity.is_bot and rules.auto_fill_bots and identity.player_id not in bot_tasks:
        bot_tasks[identity.player_id] = asyncio.create_task(drive_bot(GreedyBot(identity.player_id, rules)))
        logger.info(f"Driving bot seat {identity.player_id}")

    connection_identities[websocket] = identity
    await send_event(websocket, create_join_success_event(identity.player_id, identity.role))
    await send_state(websocket, force_full=True)
