import json
from typing import Any, Iterable

from fastapi import Request
from starlette.datastructures import UploadFile

from marketplace.core.errors import ValidationError

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def read_payload(request: Request, file_fields: Iterable[str] = ()) -> tuple[dict[str, Any], dict[str, list[UploadFile]]]:
    """
    Read a write request's body as ``(fields, files)``.

    JSON bodies and multipart/urlencoded forms are both accepted so clients can
    send plain data or data plus uploads to the same endpoint. Repeated form
    keys become lists. Files sent under any field other than ``file_fields``
    are a ValidationError, as is a body that is not a JSON object.
    """
    allowed_files = set(file_fields)
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()

    if content_type in _FORM_TYPES:
        form = await request.form()
        fields: dict[str, Any] = {}
        files: dict[str, list[UploadFile]] = {}
        for key in dict.fromkeys(form.keys()):
            values = form.getlist(key)
            uploads = [v for v in values if isinstance(v, UploadFile)]
            if uploads:
                if key not in allowed_files:
                    raise ValidationError(f"Unexpected file field '{key}'.")
                # browsers submit an empty part for an untouched file input
                files[key] = [u for u in uploads if u.filename]
            else:
                fields[key] = values[0] if len(values) == 1 else list(values)
        return fields, files

    body = await request.body()
    if not body.strip():
        return {}, {}
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON.")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data, {}
