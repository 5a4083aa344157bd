from fastapi import APIRouter, Depends
from pinquiz.errors import AuthorizationError
from pinquiz.models.requests import QuizCreate
from pinquiz.routes.deps import get_store
from pinquiz.store import GameStore
from pinquiz.utils.auth_utils import get_current_user

router = APIRouter()

@router.post("/")
async def create_quiz(quiz_data: QuizCreate, current_user: dict = Depends(get_current_user),
                      store: GameStore = Depends(get_store)):
    """Create a new quiz with its questions and options"""
    quiz_id = await store.create_quiz(current_user["id"], quiz_data)
    return {"quiz_id": quiz_id, "title": quiz_data.title}

@router.get("/")
async def list_my_quizzes(current_user: dict = Depends(get_current_user),
                          store: GameStore = Depends(get_store)):
    """Quizzes created by the current user, newest first"""
    return await store.list_quizzes(current_user["id"])

@router.get("/{quiz_id}")
async def get_quiz(quiz_id: str, current_user: dict = Depends(get_current_user),
                   store: GameStore = Depends(get_store)):
    """Quiz with questions and options (owner only, includes correct answers)"""
    quiz = await store.get_quiz(quiz_id, with_questions=True)
    if quiz.user_id != current_user["id"]:
        raise AuthorizationError("You are not the owner of this quiz")
    return quiz
