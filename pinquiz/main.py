from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pinquiz.config import settings
from pinquiz.errors import (
    AuthorizationError, ConflictError, InvalidTransitionError, NotFoundError, QuizError,
    TransientWriteError, ValidationError,
)
from pinquiz.logging_config import configure_logging
from pinquiz.routes import quizzes, games, play, realtime

configure_logging()

app = FastAPI(title=settings.app_name, version="1.0.0", description="API for PinQuiz live quiz games")

# CORS middleware for cross-origin requests (adjust origins for production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = [
    (NotFoundError, 404),
    (AuthorizationError, 403),
    (ValidationError, 422),
    (InvalidTransitionError, 409),
    (ConflictError, 409),
    (TransientWriteError, 503),
]

def status_for(error: QuizError) -> int:
    for error_class, status_code in ERROR_STATUS:
        if isinstance(error, error_class):
            return status_code
    return 400

@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    return JSONResponse(
        status_code=status_for(exc),
        content={"detail": exc.message, "error": type(exc).__name__},
    )

# Include routers with prefixes and tags
app.include_router(quizzes.router, prefix="/quizzes", tags=["Quizzes"])
app.include_router(games.router, prefix="/games", tags=["Host"])
app.include_router(play.router, prefix="/play", tags=["Players"])
app.include_router(realtime.router, prefix="/realtime", tags=["Realtime"])

# Root endpoint
@app.get("/")
async def root():
    return {"message": "Welcome to PinQuiz API", "version": app.version}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
