import logging
import re
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo import DESCENDING

from database import create_document, db, get_documents, now, parse_object_id, serialize_doc
from schemas import Client
from security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["clients"])


class ClientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    program: Optional[str] = Field(None, min_length=1)
    client_since: Optional[str] = Field(None, min_length=1)
    avatar: Optional[str] = None
    photos: Optional[List[str]] = None
    status: Optional[Literal["active", "past"]] = None


def _load(client_id: str) -> Dict[str, Any]:
    client = db["client"].find_one({"_id": parse_object_id(client_id, "client id")})
    if not client:
        raise HTTPException(status_code=404, detail="Client not found")
    return client


@router.get("")
def list_clients(status: Optional[str] = None, search: Optional[str] = None):
    query: Dict[str, Any] = {}
    if status and status != "all":
        query["status"] = status
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"name": {"$regex": pattern, "$options": "i"}},
            {"program": {"$regex": pattern, "$options": "i"}},
        ]
    clients = get_documents("client", query, sort=[("created_at", DESCENDING)])
    return {"clients": [serialize_doc(c) for c in clients], "count": len(clients)}


@router.get("/{client_id}")
def get_client(client_id: str):
    return {"client": serialize_doc(_load(client_id))}


@router.post("", status_code=201)
def create_client(data: Client, admin: dict = Depends(require_admin)):
    client_id = create_document("client", {**data.model_dump(), "created_by": admin["id"]})
    logger.info("Client %s added by %s", data.name, admin.get("email"))
    return {"client": serialize_doc(_load(client_id))}


@router.put("/{client_id}")
def update_client(client_id: str, data: ClientUpdate, admin: dict = Depends(require_admin)):
    client = _load(client_id)
    fields = data.model_dump(exclude_unset=True)
    # avatar may be cleared, the rest only replaced
    fields = {k: v for k, v in fields.items() if v is not None or k == "avatar"}
    db["client"].update_one({"_id": client["_id"]}, {"$set": {**fields, "updated_at": now()}})
    return {"client": serialize_doc(_load(client_id))}


@router.delete("/{client_id}")
def delete_client(client_id: str, admin: dict = Depends(require_admin)):
    client = _load(client_id)
    db["client"].delete_one({"_id": client["_id"]})
    logger.info("Client %s deleted by %s", client.get("name"), admin.get("email"))
    return {"ok": True, "client_id": client_id}
