from stdiogate.api.router import build_router

__all__ = ["build_router"]
