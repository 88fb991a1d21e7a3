"""
Request bodies for every route: JSON or URL-encoded forms, validated into
the same pydantic models.
"""

import json
from typing import Any, Dict, Type, TypeVar

from fastapi import HTTPException, Request
from pydantic import BaseModel

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

ModelT = TypeVar("ModelT", bound=BaseModel)


def _content_type(request: Request) -> str:
    return request.headers.get("content-type", "").split(";")[0].strip().lower()


async def read_body(request: Request) -> Any:
    """Decoded body: a dict for forms, whatever the JSON holds otherwise.

    Repeated form keys and keys written as `name[]` become lists.
    """
    if _content_type(request) in FORM_CONTENT_TYPES:
        form = await request.form()
        data: Dict[str, Any] = {}
        for key in form.keys():
            values = form.getlist(key)
            if key.endswith("[]"):
                data[key[:-2]] = values
            else:
                data[key] = values if len(values) > 1 else values[0]
        return data

    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Malformed JSON body")


def body_of(model: Type[ModelT]):
    """Dependency that parses the request body into `model`.

    pydantic.ValidationError propagates to the app's 400 handler.
    """
    async def dependency(request: Request) -> ModelT:
        return model.model_validate(await read_body(request))

    dependency.__name__ = f"{model.__name__}_body"
    return dependency
