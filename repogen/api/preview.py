"""
Read-only HTTP preview of a generated repository.

Serves the output directory so a Composer client can be pointed at
http://host:port/ while testing a configuration.
"""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from repogen.storage.index_writer import PACKAGES_FILE

logger = logging.getLogger(__name__)


def create_preview_app(output_dir: Path) -> FastAPI:
    output_dir = Path(output_dir)

    app = FastAPI(
        title="repogen preview",
        description="Static Composer repository generated by repogen.",
    )

    @app.get("/health")
    async def health() -> JSONResponse:
        """
        Lightweight health check; reports whether packages.json exists yet.
        """
        return JSONResponse(
            {"status": "ok", "generated": (output_dir / PACKAGES_FILE).is_file()}
        )

    # Mounted last so /health is matched first.
    app.mount("/", StaticFiles(directory=str(output_dir), check_dir=False), name="repository")
    logger.info(f"Preview app serving {output_dir}")
    return app


def serve(output_dir: Path, host: str = "127.0.0.1", port: int = 8000) -> None:
    import uvicorn

    uvicorn.run(create_preview_app(output_dir), host=host, port=port)
