import asyncio
import json
import os
import logging
from typing import Dict, Optional

import psutil
from fastapi import WebSocket
from starlette.websockets import WebSocketState
from pydantic import ValidationError as PydanticValidationError

from pinquiz.config import settings
from pinquiz.errors import QuizError
from pinquiz.game.host import HostController
from pinquiz.game.player import PlayerAgent
from pinquiz.models.realtime import (
    AnswerMessage, BaseMessage, ErrorMessage, HostView, HostViewMessage, MessageType, PlayerView,
    PlayerViewMessage,
)

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Binds websockets to host controllers and player agents.

    Each connection owns exactly one controller or agent; views it emits are
    pushed to that socket, and commands read from the socket are routed to it.
    The controller or agent is closed on every exit path of the connection.
    """

    def __init__(self):
        self.host_connections: Dict[str, WebSocket] = {}  # session_id -> host ws
        self.player_connections: Dict[str, Dict[str, WebSocket]] = {}  # session_id -> player_id -> ws

        self.metrics = {
            'total_connections': 0,
            'messages_sent': 0,
            'errors': 0,
            'disconnections': 0,
            'answers_processed': 0,
        }

    async def run_host(self, websocket: WebSocket, session_id: str, host_id: str, store, notifier,
                       tick_interval: float = None):
        async def push(view: HostView):
            await self.send(websocket, HostViewMessage(view=view))

        controller = await HostController.load(store, notifier, session_id, host_id,
                                               on_view=push, tick_interval=tick_interval)
        self.host_connections[session_id] = websocket
        self.metrics['total_connections'] += 1
        logger.info(f"Host {host_id} connected to session {session_id}")

        try:
            async with controller:
                while True:
                    data = await websocket.receive_text()
                    await self.handle_host_message(controller, websocket, data)
        finally:
            if self.host_connections.get(session_id) is websocket:
                del self.host_connections[session_id]
            self.metrics['disconnections'] += 1

    async def run_player(self, websocket: WebSocket, session_id: str, player_id: str, store, notifier,
                         tick_interval: float = None):
        async def push(view: PlayerView):
            await self.send(websocket, PlayerViewMessage(view=view))

        agent = PlayerAgent(store, notifier, session_id, player_id, on_view=push, tick_interval=tick_interval)
        self.player_connections.setdefault(session_id, {})[player_id] = websocket
        self.metrics['total_connections'] += 1
        logger.info(f"Player {player_id} connected to session {session_id}")

        try:
            async with agent:
                while True:
                    data = await websocket.receive_text()
                    await self.handle_player_message(agent, websocket, data)
        finally:
            players = self.player_connections.get(session_id, {})
            if players.get(player_id) is websocket:
                del players[player_id]
            if not players:
                self.player_connections.pop(session_id, None)
            self.metrics['disconnections'] += 1

    def _parse(self, data: str) -> Optional[dict]:
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            return None
        return message if isinstance(message, dict) else None

    async def handle_host_message(self, controller: HostController, websocket: WebSocket, data: str):
        """Handle commands from host"""
        message = self._parse(data)
        if message is None:
            logger.error(f"Invalid JSON from host in session {controller.session.id}")
            await self.send_error(websocket, "Invalid message format")
            return

        message_type = message.get("type")
        try:
            if message_type == MessageType.START_GAME:
                await controller.start_game()
            elif message_type == MessageType.SHOW_RESULTS:
                await controller.show_results()
            elif message_type == MessageType.NEXT_QUESTION:
                await controller.next_question()
            else:
                logger.warning(f"Unknown host message type: {message_type}")
                await self.send_error(websocket, f"Unknown message type: {message_type}")
        except QuizError as e:
            self.metrics['errors'] += 1
            await self.send_error(websocket, e.message)

    async def handle_player_message(self, agent: PlayerAgent, websocket: WebSocket, data: str):
        """Handle commands from player"""
        message = self._parse(data)
        if message is None:
            logger.error(f"Invalid JSON from player {agent.player_id}")
            await self.send_error(websocket, "Invalid message format")
            return

        message_type = message.get("type")
        if message_type != MessageType.ANSWER:
            logger.warning(f"Unknown player message type: {message_type}")
            await self.send_error(websocket, f"Unknown message type: {message_type}")
            return

        try:
            answer = AnswerMessage(**message)
            await agent.submit_answer(answer.option_id)
            self.metrics['answers_processed'] += 1
        except PydanticValidationError:
            await self.send_error(websocket, "Answer must include an option_id")
        except QuizError as e:
            self.metrics['errors'] += 1
            await self.send_error(websocket, e.message)

    async def send(self, websocket: WebSocket, message: BaseMessage, retries: int = None) -> bool:
        """Send message with retry logic"""
        retries = settings.ws_send_retries if retries is None else retries
        payload = message.model_dump_json()

        for attempt in range(retries + 1):
            try:
                await websocket.send_text(payload)
                self.metrics['messages_sent'] += 1
                return True
            except Exception as e:
                if attempt == retries:
                    logger.error(f"Failed to send message after {retries + 1} attempts: {e}")
                    self.metrics['errors'] += 1
                    return False
                await asyncio.sleep(0.05 * (attempt + 1))
        return False

    async def send_error(self, websocket: WebSocket, error_message: str):
        """Send error message to websocket"""
        if websocket.client_state == WebSocketState.DISCONNECTED:
            return
        await self.send(websocket, ErrorMessage(message=error_message), retries=0)

    def get_health_status(self) -> dict:
        """Get current system health status"""
        process = psutil.Process(os.getpid())
        memory_mb = process.memory_info().rss / 1024 / 1024
        total_players = sum(len(players) for players in self.player_connections.values())

        return {
            "status": "healthy",
            "host_connections": len(self.host_connections),
            "player_connections": total_players,
            "memory_usage_mb": round(memory_mb, 2),
            "metrics": self.metrics,
        }

# Global connection manager instance
connection_manager = ConnectionManager()
