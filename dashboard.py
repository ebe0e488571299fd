"""
Dashboard statistics.

The stats live in a single document that is recomputed from the order and
product collections. Recomputation runs as a background task after the
mutating request has been answered; a lock keeps one recomputation writing at
a time.
"""

import logging
import threading
from typing import Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import DASHBOARD_STATS, ORDERS, PRODUCTS, persistence_errors, serialize_doc, utcnow
from schemas import DashboardStats, MonthlyRevenue

logger = logging.getLogger(__name__)

SEED_MONTHLY_REVENUE = [
    ("Jan", 1200),
    ("Feb", 1800),
    ("Mar", 1500),
    ("Apr", 2000),
    ("May", 1700),
    ("Jun", 2200),
]


class DashboardAggregator:
    def __init__(self, db: Database):
        self.db = db
        self._lock = threading.Lock()

    def initialize(self) -> None:
        """Create the stats document with zeroed counters if none exists."""
        try:
            if self.db[DASHBOARD_STATS].find_one({}) is not None:
                return
            stats = DashboardStats(
                monthly_revenue=[MonthlyRevenue(month=m, revenue=r) for m, r in SEED_MONTHLY_REVENUE],
            )
            self.db[DASHBOARD_STATS].insert_one(stats.model_dump(by_alias=True))
            logger.info("Initialized dashboard stats")
        except PyMongoError as e:
            logger.error("Error initializing dashboard stats: %s", e)

    def compute(self) -> dict:
        orders = self.db[ORDERS]
        pipeline_revenue = [
            {"$match": {"status": "delivered"}},
            {"$group": {"_id": None, "revenue": {"$sum": {"$multiply": ["$productPrice", "$quantity"]}}}},
        ]
        revenue = next(iter(orders.aggregate(pipeline_revenue)), None) or {"revenue": 0}

        return {
            "totalRevenue": float(revenue.get("revenue", 0)),
            "totalOrders": orders.count_documents({}),
            "totalCustomers": len(orders.distinct("email")),
            "pendingOrders": orders.count_documents({"status": "pending"}),
            "totalProducts": self.db[PRODUCTS].count_documents({}),
        }

    def recompute(self) -> Optional[dict]:
        """Rescan orders and products and overwrite the counters.

        Errors are logged and never propagated: callers are mutating
        requests whose outcome must not depend on the stats.
        """
        with self._lock:
            try:
                totals = self.compute()
                totals["updatedAt"] = utcnow()
                self.db[DASHBOARD_STATS].update_one({}, {"$set": totals}, upsert=True)
                return totals
            except PyMongoError as e:
                logger.error("Error updating dashboard stats: %s", e)
                return None

    def get_view(self) -> dict:
        with persistence_errors("Error fetching dashboard statistics"):
            stats = self.db[DASHBOARD_STATS].find_one({})
            if stats is None:
                self.initialize()
                stats = self.db[DASHBOARD_STATS].find_one({}) or DashboardStats().model_dump(by_alias=True)
        stats = serialize_doc(stats)
        return {
            "totalRevenue": stats.get("totalRevenue", 0),
            "totalOrders": stats.get("totalOrders", 0),
            "totalCustomers": stats.get("totalCustomers", 0),
            "newCustomers": stats.get("totalCustomers", 0),
            "pendingOrders": stats.get("pendingOrders", 0),
            "totalProducts": stats.get("totalProducts", 0),
            "monthlyRevenue": stats.get("monthlyRevenue", []),
            "updatedAt": stats.get("updatedAt"),
        }
