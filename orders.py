"""
Order intake.

Public orders are validated, screened against recent order history
(duplicates and per-address volume over the last hour) and stored. The
history check and the insert are separate queries, so two concurrent
identical orders can both get through.
"""

import logging
import re
from datetime import timedelta
from typing import Callable, List, Optional

from pymongo import DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import (
    ORDERS,
    as_query_datetime,
    create_document,
    get_documents,
    persistence_errors,
    serialize_doc,
    to_object_id,
    utcnow,
)
from errors import DuplicateOrderError, NotFoundError, PersistenceError, RateLimitError, ValidationError
from schemas import ORDER_STATUSES, Order, OrderPayload

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^(05|06|07)[0-9]{8}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
WHITESPACE_RE = re.compile(r"\s")

LOOKBACK = timedelta(hours=1)
MAX_ORDERS_PER_ADDRESS = 5
VERIFIED_BELOW = 2

REQUIRED_FIELDS = (
    "product_id",
    "product_name",
    "product_price",
    "client_name",
    "wilaya",
    "address",
    "phone",
    "email",
)


def normalize_phone(phone: str) -> str:
    return WHITESPACE_RE.sub("", phone or "")


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_RE.match(normalize_phone(phone)))


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.match(email or ""))


class OrderIntakeService:
    def __init__(self, db: Database, clock: Callable = utcnow):
        self.db = db
        self.clock = clock

    @property
    def orders(self):
        return self.db[ORDERS]

    def validate(self, payload: OrderPayload) -> None:
        for field in REQUIRED_FIELDS:
            value = getattr(payload, field)
            if isinstance(value, str):
                value = value.strip()
            if not value:
                raise ValidationError("All required fields must be filled")
        if not is_valid_phone(payload.phone):
            raise ValidationError("Invalid phone number format")
        if not is_valid_email(payload.email):
            raise ValidationError("Invalid email format")
        if payload.quantity is not None and payload.quantity < 1:
            raise ValidationError("Quantity must be at least 1")

    def place_order(self, payload: OrderPayload, ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> dict:
        self.validate(payload)
        phone = normalize_phone(payload.phone)
        now = self.clock()
        since = as_query_datetime(now - LOOKBACK)

        try:
            duplicate = self.orders.find_one({
                "productId": payload.product_id,
                "phone": phone,
                "email": payload.email,
                "orderDate": {"$gt": since},
            })
            if duplicate:
                raise DuplicateOrderError()

            recent_from_address = self.orders.count_documents({
                "ipAddress": ip_address,
                "orderDate": {"$gt": since},
            })
            # The candidate order counts towards the limit
            if recent_from_address + 1 > MAX_ORDERS_PER_ADDRESS:
                raise RateLimitError()

            order = Order(
                product_id=payload.product_id,
                product_name=payload.product_name,
                product_price=payload.product_price,
                product_photos=payload.product_photos or [],
                client_name=payload.client_name,
                wilaya=payload.wilaya,
                address=payload.address,
                phone=phone,
                email=payload.email,
                color=payload.color,
                size=payload.size,
                quantity=payload.quantity or 1,
                order_date=now,
                ip_address=ip_address,
                user_agent=user_agent,
                is_verified=recent_from_address < VERIFIED_BELOW,
            )
            order_id = create_document(self.db, ORDERS, order)
        except PyMongoError as e:
            logger.error("Order error: %s", e)
            raise PersistenceError("There was an error placing your order. Please try again.") from e

        logger.info("New order received: %s by %s", order.product_name, order.client_name)
        return {
            "success": True,
            "message": "Order placed successfully! We will contact you soon.",
            "orderId": order_id,
        }

    def list_orders(self) -> List[dict]:
        with persistence_errors("Error fetching orders"):
            docs = get_documents(self.db, ORDERS, {}, sort=[("orderDate", DESCENDING)])
        return [serialize_doc(d) for d in docs]

    def update_status(self, order_id: str, status: Optional[str]) -> dict:
        if status not in ORDER_STATUSES:
            raise ValidationError("Invalid status")
        oid = to_object_id(order_id)
        with persistence_errors("Error updating order status"):
            res = self.orders.update_one({"_id": oid}, {"$set": {"status": status}}) if oid else None
            if res is None or res.matched_count == 0:
                raise NotFoundError("Order not found")
            return serialize_doc(self.orders.find_one({"_id": oid}))

    def delete_order(self, order_id: str) -> dict:
        oid = to_object_id(order_id)
        with persistence_errors("Error deleting order"):
            res = self.orders.delete_one({"_id": oid}) if oid else None
        if res is None or res.deleted_count == 0:
            raise NotFoundError("Order not found")
        return {"message": "Order deleted successfully"}
