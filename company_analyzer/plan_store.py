import json
import logging
import os
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional

from company_analyzer import errors
from company_analyzer.schemas import PLAN_SECTIONS, StoredPlan

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PlanStore(ABC):
    """Persistence for generated business plans, keyed by ``planId``.

    Lookups of unknown ids return None. Storage faults raise PlanStoreError.
    """

    @abstractmethod
    def create(self, plan: StoredPlan) -> StoredPlan:
        ...

    @abstractmethod
    def find_by_id(self, plan_id: str) -> Optional[StoredPlan]:
        ...

    @abstractmethod
    def find_all(self) -> List[StoredPlan]:
        """All plans, newest first."""

    @abstractmethod
    def delete(self, plan_id: str) -> bool:
        ...


class InMemoryPlanStore(PlanStore):
    def __init__(self):
        self._rows: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, plan: StoredPlan) -> StoredPlan:
        with self._lock:
            if plan.plan_id in self._rows:
                raise errors.PlanStoreError(f"Plan {plan.plan_id} already exists")
            row = plan.model_copy(update={"created_at": plan.created_at or _now()})
            # Stored serialized so callers never share mutable state with the store.
            self._rows[plan.plan_id] = row.model_dump_json(by_alias=True)
        return self.find_by_id(plan.plan_id)

    def find_by_id(self, plan_id: str) -> Optional[StoredPlan]:
        raw = self._rows.get(plan_id)
        if raw is None:
            return None
        return StoredPlan.model_validate_json(raw)

    def find_all(self) -> List[StoredPlan]:
        plans = [StoredPlan.model_validate_json(raw) for raw in list(self._rows.values())]
        # newest insert first when timestamps tie
        plans.reverse()
        return sorted(plans, key=lambda p: p.created_at or "", reverse=True)

    def delete(self, plan_id: str) -> bool:
        with self._lock:
            return self._rows.pop(plan_id, None) is not None


class SQLitePlanStore(PlanStore):
    """Single-file SQLite table. One connection per call; writes are serialized."""

    _COLUMNS = ["planId", "companyData", "generatedAt", "createdAt"] + PLAN_SECTIONS

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._lock = threading.Lock()
        directory = os.path.dirname(os.path.abspath(db_path))
        os.makedirs(directory, exist_ok=True)
        self._init_schema()
        logger.info(f"Plan store database location: {db_path}")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self):
        section_columns = ",\n".join(f"    {name} TEXT" for name in PLAN_SECTIONS)
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS business_plans (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        planId TEXT UNIQUE NOT NULL,
                        companyData TEXT NOT NULL,
                        generatedAt TEXT NOT NULL,
                        createdAt TEXT NOT NULL,
                    {section_columns}
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_planId ON business_plans(planId)")
                conn.commit()
            finally:
                conn.close()

    def create(self, plan: StoredPlan) -> StoredPlan:
        sections = plan.sections()
        values = [
            plan.plan_id,
            json.dumps(plan.company_data),
            plan.generated_at,
            plan.created_at or _now(),
        ] + [json.dumps(sections[name]) for name in PLAN_SECTIONS]

        placeholders = ", ".join("?" for _ in self._COLUMNS)
        sql = f"INSERT INTO business_plans ({', '.join(self._COLUMNS)}) VALUES ({placeholders})"

        with self._lock:
            conn = self._connect()
            try:
                conn.execute(sql, values)
                conn.commit()
            except sqlite3.Error as e:
                logger.error(f"Failed to store plan {plan.plan_id}: {e}")
                raise errors.PlanStoreError(f"Could not store plan {plan.plan_id}: {e}") from e
            finally:
                conn.close()

        return self.find_by_id(plan.plan_id)

    def find_by_id(self, plan_id: str) -> Optional[StoredPlan]:
        row = self._query_one("SELECT * FROM business_plans WHERE planId = ?", (plan_id,))
        if row is None:
            return None
        return self._from_row(row)

    def find_all(self) -> List[StoredPlan]:
        rows = self._query("SELECT * FROM business_plans ORDER BY createdAt DESC, id DESC")
        return [self._from_row(row) for row in rows]

    def delete(self, plan_id: str) -> bool:
        with self._lock:
            conn = self._connect()
            try:
                cursor = conn.execute("DELETE FROM business_plans WHERE planId = ?", (plan_id,))
                conn.commit()
                return cursor.rowcount > 0
            except sqlite3.Error as e:
                logger.error(f"Failed to delete plan {plan_id}: {e}")
                raise errors.PlanStoreError(f"Could not delete plan {plan_id}: {e}") from e
            finally:
                conn.close()

    def _query(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Plan store query failed: {e}")
            raise errors.PlanStoreError(f"Could not read plans: {e}") from e
        finally:
            conn.close()

    def _query_one(self, sql: str, params: tuple) -> Optional[sqlite3.Row]:
        rows = self._query(sql, params)
        return rows[0] if rows else None

    @staticmethod
    def _from_row(row: sqlite3.Row) -> StoredPlan:
        data = {
            "planId": row["planId"],
            "companyData": json.loads(row["companyData"]),
            "generatedAt": row["generatedAt"],
            "createdAt": row["createdAt"],
        }
        for name in PLAN_SECTIONS:
            raw = row[name]
            data[name] = json.loads(raw) if raw is not None else None
        return StoredPlan.model_validate(data)


def build_plan_store(backend: str, db_path: str) -> PlanStore:
    if backend == "memory":
        return InMemoryPlanStore()
    if backend == "sqlite":
        return SQLitePlanStore(db_path)
    raise errors.ConfigurationError(f"Unknown PLAN_STORE_BACKEND: {backend}")
