"""Helpers shared by the JSON views of every app."""
import json

from django.http import JsonResponse


class BadPayload(ValueError):
    pass


def read_payload(request):
    """
    Return the request body as a plain dict.

    JSON bodies are decoded; anything else falls back to the form-encoded
    POST data so HTML forms keep working against the same endpoints.
    """
    if request.content_type == "application/json":
        if not request.body:
            return {}
        try:
            data = json.loads(request.body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise BadPayload("Invalid JSON")
        if not isinstance(data, dict):
            raise BadPayload("JSON body must be an object")
        return data
    return request.POST.dict()


def error_response(message, status=400, **extra):
    return JsonResponse({"error": message, **extra}, status=status)


def validation_response(exc, choices=None, message="Please correct the errors in the form."):
    """400 body for a django ValidationError, carrying the dropdown choices to repopulate."""
    if hasattr(exc, "error_dict"):
        errors = {field: [m for e in errs for m in e.messages] for field, errs in exc.error_dict.items()}
    else:
        errors = {"__all__": exc.messages}
    body = {"errors": errors}
    if choices is not None:
        body["choices"] = choices
    return error_response(message, status=400, **body)
