"""
Repositories for the business collections (project, client, service).

Each repository owns a handle to the database it was built with; request
handlers build one per request from the ``get_db`` dependency. All of them
share the same list/get/create/update/delete contract, keyed by the public
``id`` field rather than Mongo's ``_id``.
"""

import logging
import re
import uuid
from datetime import date
from typing import List, Optional, Tuple

from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database

from aggregates import compute_dashboard_stats, compute_total_price
from config import ID_MAX_ATTEMPTS, ORDER_PREFIX
from database import advance, encode, store_call, strip_id, utcnow
from errors import Conflict, IdGenerationExhausted, NotFound, translate_validation_error
from identifiers import date_key, next_client_code, next_order_number, next_service_code
from schemas import Client, CommentIn, Project, Service

logger = logging.getLogger(__name__)


class EntityRepository:
    collection_name: str = ""
    label: str = ""
    schema = None
    # never taken from an update payload
    immutable_fields = ("id", "createdAt", "updatedAt")

    def __init__(self, db: Database):
        self.db = db
        self.collection = db[self.collection_name]

    # Hooks
    def assign_identifiers(self, data: dict) -> dict:
        if not data.get("id"):
            data["id"] = uuid.uuid4().hex
        return data

    def derive(self, document: dict) -> dict:
        return document

    def _validate(self, data: dict) -> dict:
        try:
            model = self.schema.model_validate(data)
        except ValidationError as e:
            raise translate_validation_error(e)
        return self.derive(encode(model.model_dump()))

    def _exists(self, field: str, value: str) -> bool:
        with store_call(self.collection, "checking"):
            return self.collection.find_one({field: value}, {"_id": 1}) is not None

    def _not_found(self) -> NotFound:
        return NotFound(f"{self.label.capitalize()} not found")

    # Operations
    def list(self) -> List[dict]:
        with store_call(self.collection, "listing"):
            return list(self.collection.find({}, {"_id": 0}).sort("createdAt", -1))

    def get(self, entity_id: str) -> dict:
        with store_call(self.collection, "fetching"):
            doc = self.collection.find_one({"id": entity_id}, {"_id": 0})
        if doc is None:
            raise self._not_found()
        return doc

    def create(self, data: dict) -> dict:
        document = self._validate(self.assign_identifiers(dict(data)))
        now = utcnow()
        document["createdAt"] = now
        document["updatedAt"] = now
        with store_call(self.collection, "creating", document, self.label):
            self.collection.insert_one(document)
        strip_id(document)
        logger.info("Created %s %s", self.label, document["id"])
        return document

    def update(self, entity_id: str, data: dict) -> dict:
        existing = self.get(entity_id)
        supplied = {k: v for k, v in data.items() if k not in self.immutable_fields}
        document = self._validate({**existing, **supplied})
        changes = {k: v for k, v in document.items() if k not in self.immutable_fields}
        previous = existing.get("updatedAt")
        changes["updatedAt"] = advance(previous)
        with store_call(self.collection, "updating", document, self.label):
            updated = self.collection.find_one_and_update(
                {"id": entity_id, "updatedAt": previous},
                {"$set": changes},
                projection={"_id": 0},
                return_document=ReturnDocument.AFTER,
            )
        if updated is None:
            # NotFound if it was deleted meanwhile, otherwise a concurrent write won
            self.get(entity_id)
            raise Conflict(f"{self.label.capitalize()} was modified by another request, please try again")
        logger.info("Updated %s %s", self.label, entity_id)
        return updated

    def delete(self, entity_id: str) -> dict:
        with store_call(self.collection, "deleting"):
            removed = self.collection.find_one_and_delete({"id": entity_id}, projection={"_id": 0})
        if removed is None:
            raise self._not_found()
        logger.info("Deleted %s %s", self.label, entity_id)
        return removed


class ProjectRepository(EntityRepository):
    collection_name = "project"
    label = "project"
    schema = Project
    immutable_fields = ("id", "createdAt", "updatedAt", "comments")

    def __init__(self, db: Database, prefix: str = ORDER_PREFIX):
        super().__init__(db)
        self.prefix = prefix

    def assign_identifiers(self, data: dict) -> dict:
        data = super().assign_identifiers(data)
        # comments only ever arrive through append_comment
        data["comments"] = []
        return data

    def derive(self, document: dict) -> dict:
        document["totalPrice"] = compute_total_price(
            document["price"], document["quantity"], document["discount"]
        )
        return document

    def next_order_number(self, today: Optional[date] = None) -> str:
        stem = f"{self.prefix}-{date_key(today)}-"
        with store_call(self.collection, "scanning order numbers"):
            codes = [
                d.get("numberOrder")
                for d in self.collection.find(
                    {"numberOrder": {"$regex": "^" + re.escape(stem)}},
                    {"numberOrder": 1, "_id": 0},
                )
            ]
        return next_order_number(self.prefix, codes, today)

    def create(self, data: dict) -> dict:
        if data.get("numberOrder"):
            return super().create(data)
        data = dict(data)
        for _ in range(ID_MAX_ATTEMPTS):
            data["numberOrder"] = self.next_order_number()
            try:
                return super().create(data)
            except Conflict as e:
                if e.field != "numberOrder":
                    raise
                logger.warning("Order number %s taken, regenerating", data["numberOrder"])
        raise IdGenerationExhausted(
            f"Unable to generate unique order number after {ID_MAX_ATTEMPTS} attempts"
        )

    def append_comment(self, project_id: str, data: dict) -> Tuple[dict, dict]:
        """Append a comment to a project and return ``(comment, project)``.

        The ``$push`` only applies while the project's ``updatedAt`` still
        matches what was read, so ``updatedAt`` strictly advances and a
        concurrent write makes this attempt re-read and try again.
        """
        try:
            payload = CommentIn.model_validate(data)
        except ValidationError as e:
            raise translate_validation_error(e)

        comment = {
            "id": uuid.uuid4().hex,
            "content": payload.content,
            "authorName": payload.authorName,
            "authorEmail": payload.authorEmail,
            "authorAvatar": payload.authorAvatar or "",
            "isClient": payload.isClient,
        }
        for _ in range(ID_MAX_ATTEMPTS):
            previous = self.get(project_id).get("updatedAt")
            comment["createdAt"] = advance(previous)
            with store_call(self.collection, "adding comment to"):
                project = self.collection.find_one_and_update(
                    {"id": project_id, "updatedAt": previous},
                    {"$push": {"comments": comment}, "$set": {"updatedAt": comment["createdAt"]}},
                    projection={"_id": 0},
                    return_document=ReturnDocument.AFTER,
                )
            if project is not None:
                logger.info("Comment %s added to project %s (client=%s)",
                            comment["id"], project_id, comment["isClient"])
                return comment, project
            logger.warning("Project %s changed while commenting, retrying", project_id)
        raise Conflict("Project is being modified, please try again")

    def list_comments(self, project_id: str, client_only: bool = False) -> List[dict]:
        comments = self.get(project_id).get("comments") or []
        if client_only:
            comments = [c for c in comments if c.get("isClient") is True]
        # newest first; insertion order breaks same-millisecond ties
        ordered = sorted(enumerate(comments), key=lambda pair: (pair[1]["createdAt"], pair[0]), reverse=True)
        return [c for _, c in ordered]

    def dashboard_stats(self) -> dict:
        with store_call(self.collection, "aggregating"):
            projects = list(self.collection.find({}, {"status": 1, "totalPrice": 1, "_id": 0}))
        return compute_dashboard_stats(projects)


class ClientRepository(EntityRepository):
    collection_name = "client"
    label = "client"
    schema = Client

    def assign_identifiers(self, data: dict) -> dict:
        data = super().assign_identifiers(data)
        if not data.get("clientId"):
            data["clientId"] = next_client_code(lambda code: self._exists("clientId", code))
        return data


class ServiceRepository(EntityRepository):
    collection_name = "service"
    label = "service"
    schema = Service

    def assign_identifiers(self, data: dict) -> dict:
        if not data.get("id"):
            data["id"] = next_service_code(lambda code: self._exists("id", code))
        return data
