"""
FastAPI application serving the registry overview
"""

import base64
import logging
from typing import Callable, Optional

from fastapi import FastAPI, Form, Query
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from .client import Deadline, RegistryClient
from .config import AppConfig
from .errors import RegistryError
from .pipeline import aggregate
from .render import render_html

logger = logging.getLogger(__name__)

FAVICON = base64.b64decode(
    'iVBORw0KGgoAAAANSUhEUgAAABAAAAAQEAYAAABPYyMiAAAABmJLR0T///////8JWPfcAAAACXBIWXMAAABI'
    'AAAASABGyWs+AAAAF0lEQVRIx2NgGAWjYBSMglEwCkbBSAcACBAAAeaR9cIAAAAASUVORK5CYII='
)


def create_app(config: AppConfig,
               client_factory: Optional[Callable[[], RegistryClient]] = None) -> FastAPI:
    """
    Create the web application

    Args:
        config: Runtime configuration
        client_factory: Builds a registry client per request (default: one
            for config.registry)
    """
    if client_factory is None:
        def client_factory() -> RegistryClient:
            return RegistryClient(config.registry, scheme=config.registry_scheme)

    application = FastAPI(title='hubcrawler')

    @application.get('/', response_class=HTMLResponse)
    def index() -> HTMLResponse:
        result = aggregate(config, client_factory())
        return HTMLResponse(render_html(result))

    @application.get('/api/images')
    def images() -> JSONResponse:
        result = aggregate(config, client_factory())
        return JSONResponse(result.to_dict())

    def delete_tag(image: Optional[str], digest: Optional[str]) -> RedirectResponse:
        if not image or not digest:
            logger.warning("No image to delete '%s/%s'.", image or '', digest or '')
        else:
            logger.info('Deleting image %s/%s.', image, digest)
            try:
                status = client_factory().delete_manifest(
                    image, digest, Deadline(config.request_deadline)
                )
                logger.info('Deleted image %s/%s (HTTP %d).', image, digest, status)
            except RegistryError as e:
                logger.error('Error while deleting image %s/%s: %s', image, digest, e)
        return RedirectResponse(url='/', status_code=302)

    @application.get('/delete')
    def delete_from_query(
        image: Optional[str] = Query(default=None, alias='Image'),
        digest: Optional[str] = Query(default=None, alias='DockerContentDigest'),
    ) -> RedirectResponse:
        return delete_tag(image, digest)

    @application.post('/delete')
    def delete_from_form(
        image: Optional[str] = Form(default=None, alias='Image'),
        digest: Optional[str] = Form(default=None, alias='DockerContentDigest'),
    ) -> RedirectResponse:
        return delete_tag(image, digest)

    @application.get('/favicon.ico')
    def favicon() -> Response:
        return Response(
            content=FAVICON,
            media_type='image/png',
            headers={'Cache-Control': 'public, max-age=7776000'},
        )

    return application
