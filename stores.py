"""
Store accessors

Thin wrappers over the user, product and cart collections. Each
operation is a short sequence of single-document reads and writes; none
of them run inside a transaction, so every step is a separate failure
point.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pydantic
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import CARTS_COLLECTION, PRODUCTS_COLLECTION, USERS_COLLECTION
from errors import Conflict, NotFound, ValidationError
from schemas import Cart, CartItem, Product

logger = logging.getLogger(__name__)

REPLACE_MODE = "replace"
ATOMIC_MODE = "atomic"


def now_ts() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def product_price(product: Dict[str, Any]) -> float:
    try:
        return Product.model_validate(product).price
    except pydantic.ValidationError:
        raise ValidationError("product has no valid price")


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        doc["id"] = str(_id)
        del doc["_id"]
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    # Never send password hash
    doc.pop("password", None)
    return doc


class UserStore:
    def __init__(self, db: Database):
        self.collection = db[USERS_COLLECTION]

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"email": email})

    def get_by_email(self, email: str) -> Dict[str, Any]:
        user = self.find_by_email(email)
        if not user:
            raise NotFound("email not found")
        return user

    def create(self, user: Dict[str, Any]) -> Dict[str, Any]:
        if self.find_by_email(user["email"]):
            raise Conflict("email already exists")
        try:
            result = self.collection.insert_one(user)
        except DuplicateKeyError:
            raise Conflict("email already exists")
        return {**user, "_id": result.inserted_id}

    def _update(self, email: str, update: Dict[str, Any]) -> Dict[str, Any]:
        update.setdefault("$set", {})["updated_at"] = now_ts()
        user = self.collection.find_one_and_update(
            {"email": email}, update, return_document=ReturnDocument.AFTER
        )
        if not user:
            raise NotFound("email not found")
        return user

    def set_fields(self, email: str, **fields: Any) -> Dict[str, Any]:
        return self._update(email, {"$set": fields})

    def add_favorite(self, email: str, product_id: str) -> List[str]:
        user = self._update(email, {"$push": {"favourite": product_id}})
        return user.get("favourite", [])

    def remove_favorite(self, email: str, product_id: str) -> List[str]:
        user = self._update(email, {"$pull": {"favourite": product_id}})
        return user.get("favourite", [])

    def favorites(self, email: str) -> List[str]:
        return self.get_by_email(email).get("favourite", [])


class ProductStore:
    def __init__(self, db: Database):
        self.collection = db[PRODUCTS_COLLECTION]

    def find(self, product_id: str) -> Optional[Dict[str, Any]]:
        query: Dict[str, Any] = {"product_id": product_id}
        if ObjectId.is_valid(product_id):
            query = {"$or": [query, {"_id": ObjectId(product_id)}]}
        return self.collection.find_one(query)

    def get(self, product_id: str) -> Dict[str, Any]:
        product = self.find(product_id)
        if not product:
            raise NotFound("product not found")
        return product

    def resolve_many(self, product_ids: List[str]) -> List[Dict[str, Any]]:
        """Materialize ids in order; an id that does not resolve yields an empty entry."""
        return [serialize_doc(self.find(pid)) or {} for pid in product_ids]


class CartStore:
    """
    Cart mutations by read-then-overwrite.

    The cart is read, the new items, count and total are computed here and
    written back with ``$set``. Two concurrent calls for the same email can
    lose one of the updates. See AtomicCartStore for the single-update path.
    """

    mode = REPLACE_MODE

    def __init__(self, db: Database, products: ProductStore):
        self.collection = db[CARTS_COLLECTION]
        self.products = products

    def find(self, email: str) -> Optional[Dict[str, Any]]:
        return self.collection.find_one({"email": email})

    def get(self, email: str) -> Dict[str, Any]:
        cart = self.find(email)
        if not cart:
            raise NotFound("cart not found")
        return cart

    def add_item(self, email: str, product_id: str, quantity: int) -> Dict[str, Any]:
        cart = self.find(email)
        product = self.products.get(product_id)
        amount = product_price(product) * quantity
        item = CartItem(product_id=product_id, quantity=quantity).model_dump()
        cart = self._write_add(email, cart, item, amount)
        logger.info("Cart add (%s): %s x%d for %s", self.mode, product_id, quantity, email)
        return cart

    def remove_item(self, email: str, product_id: str) -> Dict[str, Any]:
        cart = self.get(email)
        product = self.products.get(product_id)
        # only the first matching line item is subtracted from the total
        matched = next((it for it in cart.get("items", []) if it.get("product_id") == product_id), None)
        amount = product_price(product) * matched["quantity"] if matched else 0.0
        cart = self._write_remove(cart, product_id, amount)
        logger.info("Cart remove (%s): %s for %s", self.mode, product_id, email)
        return cart

    def _write_add(self, email, cart, item, amount):
        ts = now_ts()
        if cart is None:
            doc = Cart(email=email, items=[item], item_count=1, total=amount, created_at=ts, updated_at=ts).model_dump()
            try:
                result = self.collection.insert_one(doc)
                return {**doc, "_id": result.inserted_id}
            except DuplicateKeyError:
                # created by a concurrent request since our read
                cart = self.collection.find_one({"email": email})
                if cart is None:
                    raise
        changes = {
            "items": cart.get("items", []) + [item],
            "item_count": cart.get("item_count", 0) + 1,
            "total": cart.get("total", 0) + amount,
            "updated_at": ts,
        }
        self.collection.update_one({"_id": cart["_id"]}, {"$set": changes})
        return {**cart, **changes}

    def _write_remove(self, cart, product_id, amount):
        items = [it for it in cart.get("items", []) if it.get("product_id") != product_id]
        changes = {
            "total": cart.get("total", 0) - amount,
            "item_count": cart.get("item_count", 0) - 1,
            "updated_at": now_ts(),
        }
        self.collection.update_one(
            {"_id": cart["_id"]},
            {"$pull": {"items": {"product_id": product_id}}, "$set": changes},
        )
        return {**cart, **changes, "items": items}


class AtomicCartStore(CartStore):
    """Cart mutations as one conditional update expression per call."""

    mode = ATOMIC_MODE

    def _write_add(self, email, cart, item, amount):
        ts = now_ts()
        update = {
            "$push": {"items": item},
            "$inc": {"item_count": 1, "total": amount},
            "$set": {"updated_at": ts},
            "$setOnInsert": {"created_at": ts},
        }
        try:
            return self.collection.find_one_and_update(
                {"email": email}, update, upsert=True, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            # lost an upsert race; the cart exists now
            return self.collection.find_one_and_update(
                {"email": email}, update, return_document=ReturnDocument.AFTER
            )

    def _write_remove(self, cart, product_id, amount):
        updated = self.collection.find_one_and_update(
            {"_id": cart["_id"]},
            {
                "$pull": {"items": {"product_id": product_id}},
                "$inc": {"total": -amount, "item_count": -1},
                "$set": {"updated_at": now_ts()},
            },
            return_document=ReturnDocument.AFTER,
        )
        if not updated:
            raise NotFound("cart not found")
        return updated


def make_cart_store(db: Database, products: ProductStore, mode: str = REPLACE_MODE) -> CartStore:
    if mode == ATOMIC_MODE:
        return AtomicCartStore(db, products)
    if mode != REPLACE_MODE:
        logger.warning("Unknown cart update mode %r, using %r", mode, REPLACE_MODE)
    return CartStore(db, products)
