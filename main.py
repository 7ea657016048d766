# main.py
import asyncio
import os
from dotenv import load_dotenv

from fastapi import FastAPI
from api import webhook, reports
from services.supabase_service import init_supabase_service

# Load environment variables
load_dotenv()

# Initialize FastAPI app
app = FastAPI(
    title="Glucose Diet Bot",
    description="WhatsApp chatbot backend for meal analysis and blood sugar tracking",
    version="1.0.0"
)


def build_services(app: FastAPI) -> None:
    """Construct every service once and hang it on app.state"""
    from services.openai_service import init_openai_service
    from services.whatsapp_service import init_whatsapp_service
    from services.session_store import InMemorySessionStore
    from services.blood_sugar_service import BloodSugarService
    from services.meal_service import MealService
    from services.summary_service import SummaryService
    from services.conversation_service import ConversationService
    from services.dispatch_service import DispatchService

    store = init_supabase_service()
    messenger = init_whatsapp_service()
    analyzer = init_openai_service()
    sessions = InMemorySessionStore(ttl_seconds=int(os.getenv("SESSION_TTL_SECONDS", 1800)))

    blood_sugar = BloodSugarService(store)
    summaries = SummaryService(store)
    meals = MealService(store, analyzer)
    conversation = ConversationService(
        store, sessions, blood_sugar, meals,
        environment=os.getenv("ENVIRONMENT", "development")
    )

    app.state.store = store
    app.state.sessions = sessions
    app.state.blood_sugar_service = blood_sugar
    app.state.summary_service = summaries
    app.state.dispatcher = DispatchService(store, messenger, sessions, conversation, blood_sugar, summaries)


def start_session_purge(app: FastAPI) -> None:
    """Evict idle conversation states in the background"""
    interval = float(os.getenv("SESSION_PURGE_INTERVAL_SECONDS", 300))
    app.state.purge_task = asyncio.create_task(app.state.sessions.run_purge_loop(interval))
    print(f"✅ Session purge scheduled every {interval:g}s")


# Initialize services on startup
@app.on_event("startup")
async def startup_event():
    """Initialize services when the app starts"""
    print("🚀 Starting Glucose Diet Bot...")

    if getattr(app.state, "dispatcher", None) is not None:
        print("✅ Services already provided, skipping initialization")
        return

    try:
        build_services(app)
        start_session_purge(app)
        print("🎉 Backend startup complete!")
    except Exception as e:
        print(f"❌ Error during startup: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    purge_task = getattr(app.state, "purge_task", None)
    if purge_task is not None:
        purge_task.cancel()
        print("✅ Session purge stopped")


# Include API routers
app.include_router(webhook.router, tags=["webhook"])
app.include_router(reports.router, prefix="/api/users", tags=["reports"])


# Root endpoint
@app.get("/")
async def root():
    return {
        "message": "Glucose Diet Bot API",
        "version": "1.0.0",
        "status": "running",
        "features": ["meal_image_analysis", "blood_sugar_logging", "summaries", "multilingual_replies"]
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    store = getattr(app.state, "store", None)
    sessions = getattr(app.state, "sessions", None)

    try:
        if store is None:
            return {"status": "unhealthy", "message": "Services are not initialized"}

        supabase_health = await store.health_check()
        return {
            "status": supabase_health.get("status", "unhealthy"),
            "services": {
                "api": "healthy",
                "supabase": supabase_health,
                "open_conversations": len(sessions) if sessions is not None else 0,
                "active_locks": sessions.active_locks() if sessions is not None else 0
            },
            "message": "All services are running"
        }

    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
            "message": "Some services are down"
        }


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("main:app", host="0.0.0.0", port=port)
