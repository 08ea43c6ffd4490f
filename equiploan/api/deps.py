# equiploan/api/deps.py
from typing import Type, TypeVar

from fastapi import Request
from pydantic import BaseModel

from equiploan.models.borrowing import Borrowing
from equiploan.services.container import LendingServices

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def get_services(request: Request) -> LendingServices:
    return request.app.state.services


def to_response(schema: Type[SchemaT], doc) -> SchemaT:
    """Dump a Beanie document with ``_id``/ObjectIds as strings and validate it into ``schema``."""
    return schema.model_validate(doc.model_dump(mode="json", by_alias=True))


def borrowing_response(borrowing: Borrowing) -> Borrowing.Response:
    data = borrowing.model_dump(mode="json", by_alias=True)
    data["is_overdue"] = borrowing.is_overdue()
    return Borrowing.Response.model_validate(data)


def client_info(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }
