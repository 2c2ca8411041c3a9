"""Session service: credential and token lifecycle of the ``User`` aggregate."""
