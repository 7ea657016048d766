# api/dependencies.py
from fastapi import HTTPException, Request


def _service(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        print(f"❌ {name} is not initialized")
        raise HTTPException(status_code=503, detail=f"{name} is not available")
    return service


def get_dispatcher(request: Request):
    return _service(request, "dispatcher")


def get_blood_sugar_service(request: Request):
    return _service(request, "blood_sugar_service")


def get_summary_service(request: Request):
    return _service(request, "summary_service")
