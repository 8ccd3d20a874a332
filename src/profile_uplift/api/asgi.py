"""ASGI entrypoint for the profile uplift API."""

from profile_uplift.api.app import create_app
from profile_uplift.containers import build_container

app = create_app(build_container())
