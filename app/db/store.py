# app/db/store.py
import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

ASCENDING = 1
DESCENDING = -1

Sort = Sequence[Tuple[str, int]]


class DuplicateKey(Exception):
    """Se intentó insertar un documento con un id ya existente."""


class Store(ABC):
    """Acceso mínimo al almacenamiento durable.

    Cada documento tiene un campo ``id`` único dentro de su colección. Los
    filtros aceptan igualdad simple y los operadores ``$ne``, ``$in`` y
    ``$nin``. La única garantía de atomicidad es por documento: ``update``
    con ``expected`` sólo escribe si los valores actuales coinciden, e
    ``increment`` suma contadores en el propio almacenamiento.
    """

    @abstractmethod
    async def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def find(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[Sort] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        pass

    @abstractmethod
    async def insert(self, collection: str, document: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def update(
        self,
        collection: str,
        key: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Escribe ``fields`` y devuelve si el documento (con ``expected``) existía."""

    @abstractmethod
    async def increment(
        self, collection: str, key: str, amounts: Dict[str, int], upsert: bool = False
    ) -> Optional[Dict[str, Any]]:
        """Suma ``amounts`` (rutas con puntos) y devuelve el documento resultante."""

    async def find_one(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[Sort] = None,
    ) -> Optional[Dict[str, Any]]:
        found = await self.find(collection, filters, sort=sort, limit=1)
        return found[0] if found else None


# ============================ #
# 🔹 MongoDB (motor)
# ============================ #
def _to_mongo(filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not filters:
        return {}
    return {("_id" if k == "id" else k): v for k, v in filters.items()}


def _from_mongo(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    # Convierte `_id` en `id` como hace el resto de la app
    if document is None:
        return None
    if "_id" in document:
        document["id"] = document.pop("_id")
    return document


class MongoStore(Store):
    def __init__(self, db):
        self.db = db

    async def get(self, collection, key):
        return _from_mongo(await self.db[collection].find_one({"_id": key}))

    async def find(self, collection, filters=None, sort=None, limit=None):
        cursor = self.db[collection].find(_to_mongo(filters))
        if sort:
            cursor = cursor.sort([("_id" if f == "id" else f, d) for f, d in sort])
        if limit:
            cursor = cursor.limit(limit)
        return [_from_mongo(doc) for doc in await cursor.to_list(limit)]

    async def count(self, collection, filters=None):
        return await self.db[collection].count_documents(_to_mongo(filters))

    async def insert(self, collection, document):
        doc = dict(document)
        doc["_id"] = doc.pop("id")
        try:
            await self.db[collection].insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateKey(str(e)) from e

    async def update(self, collection, key, fields, expected=None):
        query = {"_id": key}
        query.update(_to_mongo(expected))
        result = await self.db[collection].update_one(query, {"$set": fields})
        return result.matched_count == 1

    async def increment(self, collection, key, amounts, upsert=False):
        document = await self.db[collection].find_one_and_update(
            {"_id": key},
            {"$inc": amounts},
            upsert=upsert,
            return_document=ReturnDocument.AFTER,
        )
        return _from_mongo(document)


# ============================ #
# 🔹 En memoria (tests y desarrollo local)
# ============================ #
def _matches(document: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    for field, condition in (filters or {}).items():
        value = document.get(field)
        if isinstance(condition, dict):
            for op, operand in condition.items():
                if op == "$ne" and value == operand:
                    return False
                if op == "$in" and value not in operand:
                    return False
                if op == "$nin" and value in operand:
                    return False
        elif value != condition:
            return False
    return True


def _sorted(documents: Iterable[Dict[str, Any]], sort: Sort) -> List[Dict[str, Any]]:
    result = list(documents)
    # Ordenación estable de la última clave a la primera; None cuenta como el menor valor, igual que en Mongo
    for field, direction in reversed(list(sort)):
        result.sort(key=lambda d: (d.get(field) is not None, d.get(field)), reverse=direction == DESCENDING)
    return result


class InMemoryStore(Store):
    """Almacenamiento en memoria con la misma semántica que ``MongoStore``.

    Cada operación cede el control al bucle de eventos antes de ejecutarse,
    igual que una llamada de red, de modo que las peticiones concurrentes se
    intercalan entre operaciones pero nunca dentro de una misma operación.
    """

    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self.collections.setdefault(name, {})

    async def get(self, collection, key):
        await asyncio.sleep(0)
        document = self._collection(collection).get(key)
        return copy.deepcopy(document)

    async def find(self, collection, filters=None, sort=None, limit=None):
        await asyncio.sleep(0)
        found = [d for d in self._collection(collection).values() if _matches(d, filters)]
        if sort:
            found = _sorted(found, sort)
        if limit:
            found = found[:limit]
        return copy.deepcopy(found)

    async def count(self, collection, filters=None):
        await asyncio.sleep(0)
        return sum(1 for d in self._collection(collection).values() if _matches(d, filters))

    async def insert(self, collection, document):
        await asyncio.sleep(0)
        docs = self._collection(collection)
        if document["id"] in docs:
            raise DuplicateKey(document["id"])
        docs[document["id"]] = copy.deepcopy(document)

    async def update(self, collection, key, fields, expected=None):
        await asyncio.sleep(0)
        document = self._collection(collection).get(key)
        if document is None or not _matches(document, expected):
            return False
        for field, value in fields.items():
            _set_path(document, field, copy.deepcopy(value))
        return True

    async def increment(self, collection, key, amounts, upsert=False):
        await asyncio.sleep(0)
        docs = self._collection(collection)
        document = docs.get(key)
        if document is None:
            if not upsert:
                return None
            document = docs[key] = {"id": key}
        for field, amount in amounts.items():
            parent, last = _walk(document, field)
            parent[last] = parent.get(last, 0) + amount
        return copy.deepcopy(document)


def _walk(document: Dict[str, Any], path: str):
    *parents, last = path.split(".")
    for part in parents:
        document = document.setdefault(part, {})
    return document, last


def _set_path(document: Dict[str, Any], path: str, value: Any) -> None:
    parent, last = _walk(document, path)
    parent[last] = value
