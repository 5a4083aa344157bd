from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, HTTPException, status
from typing import Optional
import logging
from pinquiz.errors import QuizError
from pinquiz.realtime.notifier import ChangeNotifier
from pinquiz.routes.deps import get_notifier, get_store
from pinquiz.store import GameStore
from pinquiz.utils.auth_utils import get_current_user_from_token
from pinquiz.utils.websocket_manager import connection_manager

router = APIRouter()

logger = logging.getLogger(__name__)

@router.websocket("/ws/host/{session_id}")
async def websocket_host_endpoint(websocket: WebSocket, session_id: str, token: Optional[str] = None,
                                  store: GameStore = Depends(get_store),
                                  notifier: ChangeNotifier = Depends(get_notifier)):
    """WebSocket endpoint for quiz hosts (authenticated)"""

    user = await get_current_user_from_token(token)
    if not user:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication required")
        return

    await websocket.accept()
    try:
        await connection_manager.run_host(websocket, session_id, user["id"], store, notifier)
    except WebSocketDisconnect:
        logger.info(f"Host disconnected from session {session_id}")
    except QuizError as e:
        logger.warning(f"Host connection to session {session_id} refused: {e.message}")
        await connection_manager.send_error(websocket, e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)

@router.websocket("/ws/player/{session_id}/{player_id}")
async def websocket_player_endpoint(websocket: WebSocket, session_id: str, player_id: str,
                                    store: GameStore = Depends(get_store),
                                    notifier: ChangeNotifier = Depends(get_notifier)):
    """WebSocket endpoint for players (no authentication required)"""

    await websocket.accept()
    try:
        await connection_manager.run_player(websocket, session_id, player_id, store, notifier)
    except WebSocketDisconnect:
        logger.info(f"Player {player_id} disconnected from session {session_id}")
    except QuizError as e:
        logger.warning(f"Player connection to session {session_id} refused: {e.message}")
        await connection_manager.send_error(websocket, e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)

@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring system status"""
    try:
        return {"healthy": True, **connection_manager.get_health_status()}
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        raise HTTPException(
            status_code=503,
            detail={"status": "error", "message": f"Health check failed: {str(e)}"}
        )
