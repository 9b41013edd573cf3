from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _envelope(ok, data, error, message):
    return {
        "ok": ok,
        "data": jsonable_encoder(data) if data is not None else {},
        "error": error,
        "message": message,
    }


def success_response(data=None, message="OK", status=200):
    return JSONResponse(status_code=status, content=_envelope(True, data, None, message))


def error_response(error_code, status=400, message="An error occurred", data=None):
    return JSONResponse(status_code=status, content=_envelope(False, data, error_code, message))
