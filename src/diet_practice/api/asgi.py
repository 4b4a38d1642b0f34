"""ASGI entrypoint for the diet practice API."""

from diet_practice.api.app import create_app
from diet_practice.containers import build_container

app = create_app(build_container())
