from fastapi import APIRouter, Depends, Query
from pinquiz.game.host import HostController, create_game
from pinquiz.game.scoring import leaderboard
from pinquiz.models.requests import SessionCreate
from pinquiz.realtime.notifier import ChangeNotifier
from pinquiz.routes.deps import get_notifier, get_store
from pinquiz.store import GameStore
from pinquiz.utils.auth_utils import get_current_user

router = APIRouter()

async def load_host(session_id: str, current_user: dict, store: GameStore, notifier: ChangeNotifier) -> HostController:
    return await HostController.load(store, notifier, session_id, current_user["id"])

@router.post("/")
async def host_game(body: SessionCreate, current_user: dict = Depends(get_current_user),
                    store: GameStore = Depends(get_store)):
    """Open a game session for a quiz and hand out its pin"""
    session = await create_game(store, body.quiz_id, current_user["id"])
    return {"session_id": session.id, "game_pin": session.game_pin}

@router.get("/{session_id}")
async def get_lobby(session_id: str, current_user: dict = Depends(get_current_user),
                    store: GameStore = Depends(get_store), notifier: ChangeNotifier = Depends(get_notifier)):
    """Snapshot of the host screen: pin, quiz title, roster, current question"""
    host = await load_host(session_id, current_user, store, notifier)
    return host.view()

@router.post("/{session_id}/start")
async def start_game(session_id: str, current_user: dict = Depends(get_current_user),
                     store: GameStore = Depends(get_store), notifier: ChangeNotifier = Depends(get_notifier)):
    host = await load_host(session_id, current_user, store, notifier)
    await host.start_game()
    return host.session

@router.post("/{session_id}/results")
async def show_results(session_id: str, current_user: dict = Depends(get_current_user),
                       store: GameStore = Depends(get_store), notifier: ChangeNotifier = Depends(get_notifier)):
    """Reveal the correct option and the top of the leaderboard for the current question"""
    host = await load_host(session_id, current_user, store, notifier)
    await host.show_results()
    return host.view()

@router.post("/{session_id}/next")
async def next_question(session_id: str, current_user: dict = Depends(get_current_user),
                        store: GameStore = Depends(get_store), notifier: ChangeNotifier = Depends(get_notifier)):
    """Advance to the next question, or complete the game after the last one"""
    host = await load_host(session_id, current_user, store, notifier)
    await host.next_question()
    return host.session

@router.get("/{session_id}/leaderboard")
async def get_leaderboard(session_id: str, limit: int = Query(5, ge=1, le=100),
                          current_user: dict = Depends(get_current_user),
                          store: GameStore = Depends(get_store), notifier: ChangeNotifier = Depends(get_notifier)):
    host = await load_host(session_id, current_user, store, notifier)
    scores = await host.compute_scores()
    return leaderboard(scores, limit)
