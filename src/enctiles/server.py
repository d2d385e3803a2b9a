"""HTTP tile server.

Tiles are served as ``/<style>/{z}/{y}/{x}.png``. Endpoints are plain
``def`` functions, so FastAPI runs each request in its own worker thread;
the renderer only shares frozen state between them.
"""
import logging

from fastapi import FastAPI, HTTPException, Path
from fastapi.responses import Response

logger = logging.getLogger(__name__)

PNG_MEDIA_TYPE = "image/png"


def create_app(renderer):
    """Build the tile server application around a ready renderer."""
    app = FastAPI(title="enctiles", description="S-57 chart tile server")

    @app.get("/styles")
    def list_styles():
        """Names of the loaded styles."""
        return {"styles": renderer.style_names}

    @app.get("/{style}/{z}/{y}/{x}.png")
    def get_tile(style: str,
                 z: int = Path(..., ge=0, le=30),
                 y: int = Path(..., ge=0),
                 x: int = Path(..., ge=0)):
        """Render one chart tile; 404 when there is nothing to draw."""
        try:
            png = renderer.render(x, y, z, style)
        except ValueError as err:
            raise HTTPException(status_code=404, detail=str(err)) from err
        if png is None:
            raise HTTPException(status_code=404, detail="No chart data for tile")
        return Response(content=png, media_type=PNG_MEDIA_TYPE)

    return app
