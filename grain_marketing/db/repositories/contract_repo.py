"""
Repository for executed ``grain_contracts``.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from grain_marketing.db.repositories.base import BaseRepository, iso, parse_date
from grain_marketing.models.position import GrainContract
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, ContractType

logger = logging.getLogger(__name__)


class ContractRepository(BaseRepository):
    """Read/write access to ``grain_contracts``."""

    def insert(self, contract: GrainContract) -> int:
        self.execute(
            """
            INSERT INTO grain_contracts (
                business_id, entity_id, commodity, crop_year, contract_type,
                bushels, price, delivery_date, is_deleted
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                contract.business_id,
                contract.entity_id,
                contract.commodity.value,
                contract.crop_year,
                contract.contract_type.value,
                contract.bushels,
                contract.price,
                iso(contract.delivery_date),
                int(contract.is_deleted),
            ),
        )
        return self.last_insert_rowid()

    def soft_delete(self, contract_id: int) -> None:
        self.execute(
            "UPDATE grain_contracts SET is_deleted = 1 WHERE contract_id = ?;", (contract_id,)
        )

    def get_for_business(
        self,
        business_id: int,
        crop_year: Optional[int] = None,
        include_deleted: bool = False,
    ) -> list[GrainContract]:
        """Contracts for a business, optionally limited to one crop year."""
        sql = "SELECT * FROM grain_contracts WHERE business_id = ?"
        params: list[object] = [business_id]
        if crop_year is not None:
            sql += " AND crop_year = ?"
            params.append(crop_year)
        if not include_deleted:
            sql += " AND is_deleted = 0"
        rows = self.fetchall(sql + " ORDER BY contract_id;", tuple(params))
        return [_row_to_contract(r) for r in rows]


def _row_to_contract(row: sqlite3.Row) -> GrainContract:
    return GrainContract(
        contract_id=row["contract_id"],
        business_id=row["business_id"],
        entity_id=row["entity_id"],
        commodity=Commodity(row["commodity"]),
        crop_year=row["crop_year"],
        contract_type=ContractType(row["contract_type"]),
        bushels=row["bushels"],
        price=row["price"],
        delivery_date=parse_date(row["delivery_date"]),
        is_deleted=bool(row["is_deleted"]),
    )
