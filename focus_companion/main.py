# focus_companion/main.py
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api.endpoints import companion as companion_endpoints
from .services.focus_engine.companion import build_companion

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("focus_companion")


@asynccontextmanager
async def lifespan(app: FastAPI):
    shutdown_event = asyncio.Event()
    companion = await build_companion()
    app.state.companion = companion
    runner = asyncio.create_task(companion.run(shutdown_event))
    try:
        yield
    finally:
        shutdown_event.set()
        await runner
        app.state.companion = None


app = FastAPI(title="Focus Companion", version="1.0.0", lifespan=lifespan)

# CORS for the companion UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],  # Vite default port
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(companion_endpoints.router)

@app.get("/")
async def root():
    return {"message": "Focus Companion API", "version": "1.0.0"}

@app.get("/health")
async def health():
    return {"status": "healthy", "service": "focus-companion"}
