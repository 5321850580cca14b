"""Control API for runtime management using FastAPI."""
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
import logging
import time

from promwalk.metrics import family_to_dict

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogLevelRequest(BaseModel):
    """Request to change log level."""
    level: str


class ControlAPI:
    """FastAPI-based control API for the scrape engine."""

    def __init__(self, engine):
        """
        Initialize control API.

        Args:
            engine: Reference to the scrape engine
        """
        self.engine = engine
        self.app = FastAPI(title="promwalk Control API")

        self._setup_routes()

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/healthz")
        async def healthz():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": time.time()}

        @self.app.get("/status")
        async def status():
            """Get current engine status."""
            targets = {}
            for name in self.engine.scrapers:
                result = self.engine.get_result(name)
                targets[name] = result.summary() if result else None

            return {
                "uptime_seconds": time.time() - self.engine.start_time,
                "tick_count": self.engine.tick_count,
                "running": self.engine.running,
                "targets": targets,
                "config": {
                    "scrape_interval_s": self.engine.config.global_.scrape_interval_s,
                },
            }

        @self.app.get("/targets/{name}/families")
        async def target_families(name: str):
            """Metric families from the latest scrape of a target."""
            if name not in self.engine.scrapers:
                raise HTTPException(
                    status_code=404,
                    detail=f"Target '{name}' not found. Available targets: {list(self.engine.scrapers)}"
                )

            result = self.engine.get_result(name)
            if result is None:
                raise HTTPException(status_code=404, detail=f"Target '{name}' has not been scraped yet")

            return {
                "target": name,
                "error": result.error,
                "families": [family_to_dict(f) for f in result.families],
            }

        @self.app.post("/control/scrape")
        def scrape_now():
            """Scrape every target immediately."""
            logger.info("Scrape requested through control API")
            results = {}
            for name in self.engine.scrapers:
                results[name] = self.engine.scrape_target(name).summary()
            return {"status": "scraped", "targets": results, "timestamp": time.time()}

        @self.app.post("/control/loglevel")
        async def set_log_level(request: LogLevelRequest):
            """Change log level at runtime."""
            level = request.level.upper()

            if level not in LOG_LEVELS:
                raise HTTPException(
                    status_code=400,
                    detail=f"Invalid log level: {level}"
                )

            logging.getLogger().setLevel(getattr(logging, level))
            logger.info(f"Log level changed to: {level}")

            return {
                "status": "log_level_changed",
                "level": level,
                "timestamp": time.time()
            }

    def run(self, host: str = "0.0.0.0", port: int = 8081):
        """Run the API server."""
        import uvicorn
        uvicorn.run(self.app, host=host, port=port, log_level="info")
