from fastapi import APIRouter, Depends
from pinquiz.errors import InvalidTransitionError, NotFoundError
from pinquiz.game.player import JoinFlow, join_session, record_answer
from pinquiz.game.scoring import aggregate_scores, find_player_score
from pinquiz.models.game import SessionStatus
from pinquiz.models.requests import AnswerSubmit, PinLookup, PlayerJoin
from pinquiz.routes.deps import get_store
from pinquiz.store import GameStore

router = APIRouter()

@router.post("/join")
async def find_game(body: PinLookup, store: GameStore = Depends(get_store)):
    """Look up a waiting game by pin (join step 1)"""
    session = await JoinFlow(store).enter_pin(body.game_pin)
    quiz = await store.get_quiz(session.quiz_id)
    return {"session_id": session.id, "quiz_title": quiz.title}

@router.post("/{session_id}/players")
async def join_game(session_id: str, body: PlayerJoin, store: GameStore = Depends(get_store)):
    """Join a waiting game under a display name (join step 2)"""
    player = await join_session(store, session_id, body.player_name)
    return {"player_id": player.id, "session_id": session_id, "player_name": player.player_name}

@router.post("/{session_id}/players/{player_id}/answers")
async def submit_answer(session_id: str, player_id: str, body: AnswerSubmit,
                        store: GameStore = Depends(get_store)):
    """Answer the session's current question"""
    session = await store.get_session(session_id)
    if session.status != SessionStatus.ACTIVE:
        raise InvalidTransitionError("There is no question to answer")
    if body.time_remaining <= 0:
        raise InvalidTransitionError("Time is up for this question")
    await store.get_player(session_id, player_id)

    index = session.current_question_index
    question = await store.get_question(session.quiz_id, index)
    answer = await record_answer(store, session_id, player_id, question, index,
                                 body.option_id, body.time_remaining)
    return {"is_correct": answer.is_correct, "time_taken": answer.time_taken, "question_index": index}

@router.get("/{session_id}/players/{player_id}/result")
async def get_result(session_id: str, player_id: str, store: GameStore = Depends(get_store)):
    """Final score and rank once the game is over"""
    session = await store.get_session(session_id)
    if session.status != SessionStatus.COMPLETED:
        raise InvalidTransitionError("The game is not over yet")

    players = await store.list_players(session_id)
    answers = await store.list_answers(session_id)
    questions = await store.list_questions(session.quiz_id)
    scores = aggregate_scores(players, answers, questions)

    entry = find_player_score(scores, player_id)
    if entry is None:
        raise NotFoundError("Player not found in this game")
    return {"score": entry.score, "rank": entry.rank, "total_players": len(scores)}
