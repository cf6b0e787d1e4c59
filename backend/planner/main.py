from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from planner.api.routes import accounts, ai, auth, cron, posts, publish, users
from planner.core.exceptions import PlannerError
from planner.core.logging_config import configure_logging
from planner.db.init_db import init_db

configure_logging()

# Create database tables on startup
init_db()

app = FastAPI(title="Social Planner - Backend API", version="1.0")

app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(accounts.router, prefix="/api/social", tags=["accounts"])
app.include_router(publish.router, prefix="/api/social", tags=["publish"])
app.include_router(posts.router, prefix="/api/posts", tags=["posts"])
app.include_router(cron.router, prefix="/api/cron", tags=["cron"])
app.include_router(ai.router, prefix="/api/ai", tags=["ai"])

@app.exception_handler(PlannerError)
async def planner_error_handler(request: Request, exc: PlannerError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "error": type(exc).__name__})

@app.get("/api/health")
def health_check():
    return {"status": "ok"}
