from fastapi import FastAPI
import uvicorn
import asyncio
import logging
from contextlib import asynccontextmanager

from app.api.router import router
from app.config import settings
from app.core.logging import setup_logging
from app.dependencies import get_sync_worker


setup_logging(settings.LOG_LEVEL, log_file=settings.LOG_FILE)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Démarrage de l'application...")

    app.state.worker = None
    app.state.worker_task = None

    if settings.SYNC_WORKER_EMBEDDED:
        try:
            worker = get_sync_worker()
            app.state.worker = worker
            app.state.worker_task = worker.start()
            logger.info("✅ Worker de synchronisation démarré en arrière-plan")

        except Exception as e:
            logger.error(f"❌ Erreur au démarrage du worker: {e}")
            app.state.worker = None
            app.state.worker_task = None

    yield

    logger.info("🔄 Arrêt de l'application...")

    if app.state.worker:
        logger.info("🔄 Arrêt du worker en cours...")
        app.state.worker.stop()

        if app.state.worker_task:
            # Le worker draine lui-même ses syncs dans le délai de grâce
            timeout = settings.SYNC_SHUTDOWN_GRACE_SECONDS + 5
            try:
                await asyncio.wait_for(app.state.worker_task, timeout=timeout)
                logger.info("✅ Worker arrêté proprement")
            except asyncio.TimeoutError:
                logger.warning("⚠️ Worker forcé à s'arrêter (timeout)")

    logger.info("✅ Application arrêtée proprement")

app = FastAPI(
    title=settings.APP_NAME,
    description="API de synchronisation des intégrations de données KPI",
    version="1.0.0",
    lifespan=lifespan
)

app.include_router(router)


if __name__ == "__main__":
    url = "http://localhost:8000/docs"
    print(f"🚀 {settings.APP_NAME} démarrée !")
    print(f"📚 Documentation : {url}")
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
