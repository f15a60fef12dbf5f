"""
Repository for businesses, entities, farms and everything that feeds the
break-even calculation: products, usage lines, other costs, entity splits,
loans and production estimates.

``get_farms`` reassembles validated ``FarmRecord`` models, so any row that
violates the cost invariants (a usage line without a quantity, splits not
summing to 100 %) surfaces as a ``ValidationError`` at read time.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from grain_marketing.costs.loans import LandLoanCharge, allocate_loans
from grain_marketing.db.repositories.base import BaseRepository
from grain_marketing.models.costs import (
    ChemicalProduct,
    ChemicalUsage,
    EntitySplit,
    FarmRecord,
    FertilizerProduct,
    FertilizerUsage,
    LoanAllocation,
    OtherCost,
    ProductionEstimate,
    SeedProduct,
    SeedUsage,
)
from grain_marketing.taxonomy.marketing_taxonomy import (
    ApplicationRateUnit,
    Commodity,
    FertilizerUnit,
    LiquidUnit,
    OtherCostType,
)

logger = logging.getLogger(__name__)


class CostRepository(BaseRepository):
    """Read/write access to the cost and production tables."""

    # ── Businesses and entities ──────────────────────────────────────────────

    def insert_business(self, name: str) -> int:
        self.execute("INSERT INTO businesses (name) VALUES (?);", (name,))
        return self.last_insert_rowid()

    def insert_entity(self, business_id: int, name: str) -> int:
        self.execute(
            "INSERT INTO entities (business_id, name) VALUES (?, ?);", (business_id, name)
        )
        return self.last_insert_rowid()

    def list_business_ids(self) -> list[int]:
        rows = self.fetchall("SELECT business_id FROM businesses ORDER BY business_id;")
        return [r["business_id"] for r in rows]

    def business_exists(self, business_id: int) -> bool:
        row = self.fetchone(
            "SELECT 1 AS found FROM businesses WHERE business_id = ?;", (business_id,)
        )
        return row is not None

    # ── Farms ────────────────────────────────────────────────────────────────

    def save_farm(self, business_id: int, farm: FarmRecord) -> int:
        """Insert a farm with all of its usage lines, costs and splits.

        Products are matched by name within the business and created on
        first use.

        Returns:
            The farm's ``farm_id``.
        """
        self.execute(
            """
            INSERT INTO farms (
                farm_id, business_id, primary_entity_id, name, commodity, year,
                acres, projected_yield
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                farm.farm_id,
                business_id,
                farm.primary_entity_id,
                farm.name,
                farm.commodity.value,
                farm.year,
                farm.acres,
                farm.projected_yield,
            ),
        )
        farm_id = self.last_insert_rowid()

        for usage in farm.fertilizer_usage:
            product_id = self._fertilizer_product_id(business_id, usage.product)
            self.execute(
                """
                INSERT INTO farm_fertilizer_usage (
                    farm_id, product_id, amount_used, rate_per_acre, rate_unit, acres_applied
                ) VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    farm_id, product_id, usage.amount_used, usage.rate_per_acre,
                    usage.rate_unit.value, usage.acres_applied,
                ),
            )

        for usage in farm.chemical_usage:
            product_id = self._chemical_product_id(business_id, usage.product)
            self.execute(
                """
                INSERT INTO farm_chemical_usage (
                    farm_id, product_id, amount_used, rate_per_acre, rate_unit, acres_applied
                ) VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    farm_id, product_id, usage.amount_used, usage.rate_per_acre,
                    usage.rate_unit.value, usage.acres_applied,
                ),
            )

        for usage in farm.seed_usage:
            product_id = self._seed_product_id(business_id, usage.product)
            self.execute(
                """
                INSERT INTO farm_seed_usage (
                    farm_id, product_id, bags_used, rate_per_acre, acres_applied
                ) VALUES (?, ?, ?, ?, ?);
                """,
                (farm_id, product_id, usage.bags_used, usage.rate_per_acre, usage.acres_applied),
            )

        self.executemany(
            """
            INSERT INTO farm_other_costs (farm_id, description, cost_type, amount, is_per_acre)
            VALUES (?, ?, ?, ?, ?);
            """,
            [
                (farm_id, c.description, c.cost_type.value, c.amount, int(c.is_per_acre))
                for c in farm.other_costs
            ],
        )
        self.executemany(
            "INSERT INTO farm_entity_splits (farm_id, entity_id, percentage) VALUES (?, ?, ?);",
            [(farm_id, s.entity_id, s.percentage) for s in farm.splits],
        )
        return farm_id

    def get_farms(self, business_id: int, year: int) -> list[FarmRecord]:
        rows = self.fetchall(
            "SELECT * FROM farms WHERE business_id = ? AND year = ? ORDER BY farm_id;",
            (business_id, year),
        )
        return [self._assemble_farm(r) for r in rows]

    def _assemble_farm(self, row: sqlite3.Row) -> FarmRecord:
        farm_id = row["farm_id"]

        fertilizer = [
            FertilizerUsage(
                product=FertilizerProduct(
                    name=r["name"],
                    price_per_unit=r["price_per_unit"],
                    unit=FertilizerUnit(r["unit"]),
                    nitrogen_pct=r["nitrogen_pct"],
                    phosphorus_pct=r["phosphorus_pct"],
                    potassium_pct=r["potassium_pct"],
                    sulfur_pct=r["sulfur_pct"],
                    lbs_per_gallon=r["lbs_per_gallon"],
                    is_manure=bool(r["is_manure"]),
                ),
                amount_used=r["amount_used"],
                rate_per_acre=r["rate_per_acre"],
                rate_unit=ApplicationRateUnit(r["rate_unit"]),
                acres_applied=r["acres_applied"],
            )
            for r in self.fetchall(
                """
                SELECT u.*, p.name, p.price_per_unit, p.unit, p.nitrogen_pct,
                       p.phosphorus_pct, p.potassium_pct, p.sulfur_pct,
                       p.lbs_per_gallon, p.is_manure
                FROM farm_fertilizer_usage u
                JOIN fertilizer_products p ON p.product_id = u.product_id
                WHERE u.farm_id = ? ORDER BY u.usage_id;
                """,
                (farm_id,),
            )
        ]

        chemical = [
            ChemicalUsage(
                product=ChemicalProduct(
                    name=r["name"],
                    price_per_unit=r["price_per_unit"],
                    is_liquid=bool(r["is_liquid"]),
                ),
                amount_used=r["amount_used"],
                rate_per_acre=r["rate_per_acre"],
                rate_unit=LiquidUnit(r["rate_unit"]),
                acres_applied=r["acres_applied"],
            )
            for r in self.fetchall(
                """
                SELECT u.*, p.name, p.price_per_unit, p.is_liquid
                FROM farm_chemical_usage u
                JOIN chemical_products p ON p.product_id = u.product_id
                WHERE u.farm_id = ? ORDER BY u.usage_id;
                """,
                (farm_id,),
            )
        ]

        seed = [
            SeedUsage(
                product=SeedProduct(
                    name=r["name"],
                    price_per_bag=r["price_per_bag"],
                    seeds_per_bag=r["seeds_per_bag"],
                ),
                bags_used=r["bags_used"],
                rate_per_acre=r["rate_per_acre"],
                acres_applied=r["acres_applied"],
            )
            for r in self.fetchall(
                """
                SELECT u.*, p.name, p.price_per_bag, p.seeds_per_bag
                FROM farm_seed_usage u
                JOIN seed_products p ON p.product_id = u.product_id
                WHERE u.farm_id = ? ORDER BY u.usage_id;
                """,
                (farm_id,),
            )
        ]

        other = [
            OtherCost(
                description=r["description"],
                cost_type=OtherCostType(r["cost_type"]),
                amount=r["amount"],
                is_per_acre=bool(r["is_per_acre"]),
            )
            for r in self.fetchall(
                "SELECT * FROM farm_other_costs WHERE farm_id = ? ORDER BY cost_id;",
                (farm_id,),
            )
        ]

        splits = [
            EntitySplit(entity_id=r["entity_id"], percentage=r["percentage"])
            for r in self.fetchall(
                "SELECT * FROM farm_entity_splits WHERE farm_id = ? ORDER BY entity_id;",
                (farm_id,),
            )
        ]

        return FarmRecord(
            farm_id=farm_id,
            name=row["name"],
            primary_entity_id=row["primary_entity_id"],
            commodity=Commodity(row["commodity"]),
            year=row["year"],
            acres=row["acres"],
            projected_yield=row["projected_yield"],
            fertilizer_usage=fertilizer,
            chemical_usage=chemical,
            seed_usage=seed,
            other_costs=other,
            splits=splits,
        )

    def _fertilizer_product_id(self, business_id: int, product: FertilizerProduct) -> int:
        row = self.fetchone(
            "SELECT product_id FROM fertilizer_products WHERE business_id = ? AND name = ?;",
            (business_id, product.name),
        )
        if row:
            return row["product_id"]
        self.execute(
            """
            INSERT INTO fertilizer_products (
                business_id, name, price_per_unit, unit, nitrogen_pct, phosphorus_pct,
                potassium_pct, sulfur_pct, lbs_per_gallon, is_manure
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                business_id, product.name, product.price_per_unit, product.unit.value,
                product.nitrogen_pct, product.phosphorus_pct, product.potassium_pct,
                product.sulfur_pct, product.lbs_per_gallon, int(product.is_manure),
            ),
        )
        return self.last_insert_rowid()

    def _chemical_product_id(self, business_id: int, product: ChemicalProduct) -> int:
        row = self.fetchone(
            "SELECT product_id FROM chemical_products WHERE business_id = ? AND name = ?;",
            (business_id, product.name),
        )
        if row:
            return row["product_id"]
        self.execute(
            """
            INSERT INTO chemical_products (business_id, name, price_per_unit, is_liquid)
            VALUES (?, ?, ?, ?);
            """,
            (business_id, product.name, product.price_per_unit, int(product.is_liquid)),
        )
        return self.last_insert_rowid()

    def _seed_product_id(self, business_id: int, product: SeedProduct) -> int:
        row = self.fetchone(
            "SELECT product_id FROM seed_products WHERE business_id = ? AND name = ?;",
            (business_id, product.name),
        )
        if row:
            return row["product_id"]
        self.execute(
            """
            INSERT INTO seed_products (business_id, name, price_per_bag, seeds_per_bag)
            VALUES (?, ?, ?, ?);
            """,
            (business_id, product.name, product.price_per_bag, product.seeds_per_bag),
        )
        return self.last_insert_rowid()

    # ── Loans ────────────────────────────────────────────────────────────────

    def add_land_loan(self, farm_id: int, annual_interest: float, annual_principal: float) -> int:
        self.execute(
            "INSERT INTO land_loans (farm_id, annual_interest, annual_principal) VALUES (?, ?, ?);",
            (farm_id, annual_interest, annual_principal),
        )
        return self.last_insert_rowid()

    def set_operating_loans(
        self,
        business_id: int,
        year: int,
        operating_interest_total: float,
        equipment_interest_per_acre: float = 0.0,
        equipment_principal_per_acre: float = 0.0,
    ) -> None:
        self.execute(
            """
            INSERT INTO operating_loans (
                business_id, year, operating_interest_total,
                equipment_interest_per_acre, equipment_principal_per_acre
            ) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(business_id, year) DO UPDATE SET
                operating_interest_total     = excluded.operating_interest_total,
                equipment_interest_per_acre  = excluded.equipment_interest_per_acre,
                equipment_principal_per_acre = excluded.equipment_principal_per_acre;
            """,
            (
                business_id, year, operating_interest_total,
                equipment_interest_per_acre, equipment_principal_per_acre,
            ),
        )

    def get_loan_allocations(
        self,
        business_id: int,
        year: int,
        farms: list[FarmRecord],
    ) -> list[LoanAllocation]:
        """Allocate the business's loan costs to ``farms`` for ``year``."""
        farm_ids = [f.farm_id for f in farms]
        land: list[LandLoanCharge] = []
        if farm_ids:
            placeholders = ", ".join("?" for _ in farm_ids)
            land = [
                LandLoanCharge(
                    farm_id=r["farm_id"],
                    annual_interest=r["annual_interest"],
                    annual_principal=r["annual_principal"],
                )
                for r in self.fetchall(
                    f"SELECT * FROM land_loans WHERE farm_id IN ({placeholders});",
                    tuple(farm_ids),
                )
            ]

        op = self.fetchone(
            "SELECT * FROM operating_loans WHERE business_id = ? AND year = ?;",
            (business_id, year),
        )
        return allocate_loans(
            year,
            farms,
            land_loans=land,
            operating_interest_total=op["operating_interest_total"] if op else 0.0,
            equipment_interest_per_acre=op["equipment_interest_per_acre"] if op else 0.0,
            equipment_principal_per_acre=op["equipment_principal_per_acre"] if op else 0.0,
        )

    # ── Production estimates ─────────────────────────────────────────────────

    def upsert_production_estimate(self, estimate: ProductionEstimate) -> None:
        self.execute(
            """
            INSERT INTO production_estimates (entity_id, commodity, year, acres, bushels_per_acre)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(entity_id, commodity, year) DO UPDATE SET
                acres            = excluded.acres,
                bushels_per_acre = excluded.bushels_per_acre;
            """,
            (
                estimate.entity_id,
                estimate.commodity.value,
                estimate.year,
                estimate.acres,
                estimate.bushels_per_acre,
            ),
        )

    def get_production_estimates(
        self,
        business_id: int,
        year: Optional[int] = None,
    ) -> list[ProductionEstimate]:
        sql = """
            SELECT pe.* FROM production_estimates pe
            JOIN entities e ON e.entity_id = pe.entity_id
            WHERE e.business_id = ?
        """
        params: tuple[object, ...] = (business_id,)
        if year is not None:
            sql += " AND pe.year = ?"
            params = (business_id, year)
        rows = self.fetchall(sql + " ORDER BY pe.estimate_id;", params)
        return [
            ProductionEstimate(
                estimate_id=r["estimate_id"],
                entity_id=r["entity_id"],
                commodity=Commodity(r["commodity"]),
                year=r["year"],
                acres=r["acres"],
                bushels_per_acre=r["bushels_per_acre"],
            )
            for r in rows
        ]
