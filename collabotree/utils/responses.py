from flask import jsonify


def ok(data=None, message=None, code=200):
    payload = {"success": True, "data": data}
    if message:
        payload["message"] = message
    return jsonify(payload), code


def created(data=None, message=None):
    return ok(data, message, code=201)
