"""
Repository for marketing preferences, personalized thresholds and old-crop
inventory.

Preferences are stored as a single JSON payload per business so new
preference fields do not need a migration; the payload is re-validated
through ``MarketingPreferences`` on read.
"""

from __future__ import annotations

import logging
from typing import Optional

from grain_marketing.db.repositories.base import BaseRepository
from grain_marketing.models.preferences import (
    MarketingPreferences,
    OldCropInventory,
    PersonalizedThreshold,
)
from grain_marketing.taxonomy.marketing_taxonomy import Commodity, SignalType
from grain_marketing.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


class PreferencesRepository(BaseRepository):
    """Read/write access to the per-business preference tables."""

    def get(self, business_id: int) -> Optional[MarketingPreferences]:
        row = self.fetchone(
            "SELECT payload FROM marketing_preferences WHERE business_id = ?;",
            (business_id,),
        )
        return MarketingPreferences.model_validate_json(row["payload"]) if row else None

    def save(self, prefs: MarketingPreferences) -> None:
        self.execute(
            """
            INSERT INTO marketing_preferences (business_id, payload, updated_at)
            VALUES (?, ?, ?)
            ON CONFLICT(business_id) DO UPDATE SET
                payload    = excluded.payload,
                updated_at = excluded.updated_at;
            """,
            (prefs.business_id, prefs.model_dump_json(), utcnow().isoformat()),
        )

    def get_or_create(self, business_id: int) -> MarketingPreferences:
        """Return stored preferences, saving defaults when none exist."""
        prefs = self.get(business_id)
        if prefs is None:
            logger.info("No preferences for business %d; saving defaults.", business_id)
            prefs = MarketingPreferences(business_id=business_id)
            self.save(prefs)
        return prefs

    # ── Personalized thresholds ──────────────────────────────────────────────

    def upsert_threshold(self, threshold: PersonalizedThreshold) -> None:
        self.execute(
            """
            INSERT INTO personalized_thresholds (
                business_id, commodity, signal_type, buy_threshold,
                strong_buy_threshold, confidence, data_points
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(business_id, commodity, signal_type) DO UPDATE SET
                buy_threshold        = excluded.buy_threshold,
                strong_buy_threshold = excluded.strong_buy_threshold,
                confidence           = excluded.confidence,
                data_points          = excluded.data_points;
            """,
            (
                threshold.business_id,
                threshold.commodity.value,
                threshold.signal_type.value,
                threshold.buy_threshold,
                threshold.strong_buy_threshold,
                threshold.confidence,
                threshold.data_points,
            ),
        )

    def get_thresholds(
        self,
        business_id: int,
        commodity: Commodity,
    ) -> dict[SignalType, PersonalizedThreshold]:
        rows = self.fetchall(
            """
            SELECT * FROM personalized_thresholds
            WHERE business_id = ? AND commodity = ?;
            """,
            (business_id, commodity.value),
        )
        return {
            SignalType(r["signal_type"]): PersonalizedThreshold(
                threshold_id=r["threshold_id"],
                business_id=r["business_id"],
                commodity=Commodity(r["commodity"]),
                signal_type=SignalType(r["signal_type"]),
                buy_threshold=r["buy_threshold"],
                strong_buy_threshold=r["strong_buy_threshold"],
                confidence=r["confidence"],
                data_points=r["data_points"],
            )
            for r in rows
        }

    # ── Old-crop inventory ───────────────────────────────────────────────────

    def upsert_old_crop(self, inventory: OldCropInventory) -> None:
        self.execute(
            """
            INSERT INTO old_crop_inventory (business_id, commodity, crop_year, unpriced_bushels)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(business_id, commodity, crop_year) DO UPDATE SET
                unpriced_bushels = excluded.unpriced_bushels;
            """,
            (
                inventory.business_id,
                inventory.commodity.value,
                inventory.crop_year,
                inventory.unpriced_bushels,
            ),
        )

    def get_old_crop(
        self,
        business_id: int,
        commodity: Commodity,
        crop_year: int,
    ) -> Optional[OldCropInventory]:
        row = self.fetchone(
            """
            SELECT * FROM old_crop_inventory
            WHERE business_id = ? AND commodity = ? AND crop_year = ?;
            """,
            (business_id, commodity.value, crop_year),
        )
        if row is None:
            return None
        return OldCropInventory(
            business_id=row["business_id"],
            commodity=Commodity(row["commodity"]),
            crop_year=row["crop_year"],
            unpriced_bushels=row["unpriced_bushels"],
        )
