from . import upload

routers = [
    upload.router,
]

__all__ = [
    "routers",
]
