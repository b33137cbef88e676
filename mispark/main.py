import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mispark import config
from mispark.core.capture import CapturePipeline
from mispark.core.leaderboard import LeaderboardView
from mispark.core.session import FeedSession
from mispark.db.db import engine
from mispark.db.realtime import PostgresChangeChannel
from mispark.db.reports_repo import ReportBackend
from mispark.routers import leaderboard, profile, reports
from mispark.utils.ocr_client import OcrSpaceClient
from mispark.utils.s3_service import PhotoUploadClient

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    backend = ReportBackend(engine)
    report_uploader = PhotoUploadClient(config.REPORT_PHOTOS_BUCKET)
    channel = PostgresChangeChannel(
        config.DATABASE_URL,
        channel=config.REALTIME_CHANNEL,
        reconnect_delay=config.REALTIME_RECONNECT_SECONDS,
    )
    leaderboard_view = LeaderboardView(backend)

    async with FeedSession(
        backend,
        channel,
        report_uploader,
        resync_on_reconnect=config.RESYNC_ON_RECONNECT,
    ) as feed:
        feed.reconciler.on_change.append(leaderboard_view.on_report_change)

        app.state.backend = backend
        app.state.feed = feed
        app.state.leaderboard = leaderboard_view
        app.state.profile_uploader = PhotoUploadClient(config.PROFILE_PHOTOS_BUCKET, s3=report_uploader.s3)
        app.state.capture = CapturePipeline(
            OcrSpaceClient(),
            report_uploader,
            backend,
            is_active=lambda: feed.active,
        )

        await leaderboard_view.refresh()
        logger.info("mispark ready")
        try:
            yield
        finally:
            await leaderboard_view.close()
            app.state.feed = None


app = FastAPI(title="mispark", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(reports.router, prefix="/reports", tags=["Reports"])
app.include_router(leaderboard.router, prefix="/leaderboard", tags=["Leaderboard"])
app.include_router(profile.router, prefix="/profile", tags=["Profile"])


@app.get("/")
def root():
    return {"status": "ok"}
