from flask import jsonify

# Default error codes for checks made at the HTTP boundary
_STATUS_CODES = {
    400: "BadRequest",
    401: "Unauthorized",
    403: "Forbidden",
    404: "NotFound",
    409: "Conflict",
}


def json_error(message: str, status: int = 400, code: str | None = None):
    return jsonify({"error": message, "code": code or _STATUS_CODES.get(status, "Error")}), status
