from fastapi import HTTPException, Request


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return value


def get_feed_session(request: Request):
    return _state(request, "feed")


def get_capture_pipeline(request: Request):
    return _state(request, "capture")


def get_leaderboard(request: Request):
    return _state(request, "leaderboard")


def get_backend(request: Request):
    return _state(request, "backend")


def get_profile_uploader(request: Request):
    return _state(request, "profile_uploader")
