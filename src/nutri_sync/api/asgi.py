"""ASGI entrypoint for the Nutri-Sync API."""

from nutri_sync.api.app import create_app
from nutri_sync.containers import build_container

app = create_app(build_container())
