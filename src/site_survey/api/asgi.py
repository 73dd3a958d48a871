"""ASGI entrypoint for the site survey API."""

from site_survey.api.app import create_app
from site_survey.containers import build_container

app = create_app(build_container())
