"""Service layer.

Import from the concrete modules (``authcore.services.sessions.service``,
``authcore.services._shared.errors``); this package re-exports nothing because
repositories import the shared errors while services import repositories.
"""
