"""Tests for signal, market, preference and accumulator models."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest
from pydantic import TypeAdapter, ValidationError

from grain_marketing.models.accumulator import AccumulatorContract
from grain_marketing.models.market import FuturesQuote
from grain_marketing.models.preferences import MarketingPreferences
from grain_marketing.models.signal import (
    AccumulatorContext,
    MarketingSignal,
    SignalContext,
    SignalDraft,
)
from grain_marketing.taxonomy.marketing_taxonomy import (
    AccumulatorType,
    Commodity,
    SignalStatus,
    SignalStrength,
    SignalType,
)

NOW = datetime(2025, 6, 2, 12, 0, tzinfo=timezone.utc)


def _draft(**overrides) -> dict:
    fields = {
        "business_id": 1,
        "signal_type": SignalType.CASH_SALE,
        "commodity": Commodity.CORN,
        "crop_year": 2025,
        "strength": SignalStrength.BUY,
        "current_price": 5.55,
        "title": "Corn Cash Sale Signal",
        "summary": "Consider selling 10,000 bu of corn.",
        "expires_at": NOW,
    }
    fields.update(overrides)
    return fields


class TestSignalDraft:
    @pytest.mark.parametrize("strength", [SignalStrength.BUY, SignalStrength.STRONG_BUY])
    def test_actionable_strengths(self, strength):
        assert SignalDraft(**_draft(strength=strength)).strength is strength

    @pytest.mark.parametrize(
        "strength", [SignalStrength.HOLD, SignalStrength.SELL, SignalStrength.STRONG_SELL]
    )
    def test_non_actionable_rejected(self, strength):
        with pytest.raises(ValidationError, match="Only BUY/STRONG_BUY"):
            SignalDraft(**_draft(strength=strength))

    def test_negative_bushels_rejected(self):
        with pytest.raises(ValidationError, match="recommended_bushels"):
            SignalDraft(**_draft(recommended_bushels=-1.0))

    def test_context_tagged_union(self):
        payload = AccumulatorContext(
            futures_price=5.00, knockout_price=4.25, double_up_price=5.50,
            knockout_distance_pct=0.176,
        ).model_dump_json()
        ctx = TypeAdapter(SignalContext).validate_json(payload)
        assert isinstance(ctx, AccumulatorContext)
        assert ctx.kind == "accumulator"


class TestMarketingSignal:
    @pytest.mark.parametrize(
        "status, terminal",
        [
            (SignalStatus.ACTIVE, False),
            (SignalStatus.TRIGGERED, True),
            (SignalStatus.DISMISSED, True),
            (SignalStatus.EXPIRED, True),
        ],
    )
    def test_is_terminal(self, status, terminal):
        signal = MarketingSignal(**_draft(), status=status, created_at=NOW)
        assert signal.is_terminal is terminal


class TestFuturesQuote:
    def test_month_normalised(self):
        quote = FuturesQuote(commodity=Commodity.CORN, quote_date=date(2025, 6, 2),
                             contract_month=" dec ", contract_year=2025, price=4.50)
        assert quote.contract_month == "DEC"
        assert quote.label == "DEC25"

    def test_unknown_month_raises(self):
        with pytest.raises(ValidationError, match="contract month"):
            FuturesQuote(commodity=Commodity.CORN, quote_date=date(2025, 6, 2),
                         contract_month="DEZ", contract_year=2025, price=4.50)

    def test_non_positive_price_raises(self):
        with pytest.raises(ValidationError, match="price"):
            FuturesQuote(commodity=Commodity.CORN, quote_date=date(2025, 6, 2),
                         contract_month="DEC", contract_year=2025, price=0.0)


class TestMarketingPreferences:
    def test_defaults(self):
        prefs = MarketingPreferences(business_id=1)
        assert prefs.pre_harvest_target(Commodity.CORN) == pytest.approx(0.50)
        assert all(prefs.is_enabled(t) for t in SignalType)

    def test_target_out_of_range_raises(self):
        with pytest.raises(ValidationError, match="pre_harvest_targets"):
            MarketingPreferences(business_id=1, pre_harvest_targets={Commodity.CORN: 1.5})

    def test_disable_flag(self):
        prefs = MarketingPreferences(business_id=1, enable_hta=False)
        assert prefs.is_enabled(SignalType.HTA) is False
        assert prefs.is_enabled(SignalType.CASH_SALE) is True


class TestAccumulatorContract:
    def _fields(self, **overrides) -> dict:
        fields = {
            "business_id": 1,
            "commodity": Commodity.CORN,
            "start_date": date(2025, 5, 1),
            "end_date": date(2025, 8, 29),
            "total_bushels": 50_000.0,
            "base_price": 4.80,
            "knockout_price": 3.50,
            "double_up_price": 4.20,
            "daily_bushels": 1_000.0,
        }
        fields.update(overrides)
        return fields

    def test_valid(self):
        contract = AccumulatorContract(**self._fields())
        assert contract.accumulator_type is AccumulatorType.DAILY
        assert contract.is_in_window(date(2025, 5, 1))
        assert not contract.is_in_window(date(2025, 8, 30))

    def test_knockout_not_below_double_up_raises(self):
        with pytest.raises(ValidationError, match="knockout_price"):
            AccumulatorContract(**self._fields(knockout_price=4.20))

    def test_negative_rate_raises(self):
        with pytest.raises(ValidationError, match="daily_bushels"):
            AccumulatorContract(**self._fields(daily_bushels=-100.0))

    def test_dates_reversed_raises(self):
        with pytest.raises(ValidationError, match="start_date"):
            AccumulatorContract(**self._fields(end_date=date(2025, 4, 1)))

    def test_weekly_rate(self):
        contract = AccumulatorContract(**self._fields())
        assert contract.weekly_rate(5.0) == pytest.approx(5_000)
        explicit = AccumulatorContract(**self._fields(weekly_bushels=3_500.0))
        assert explicit.weekly_rate(5.0) == pytest.approx(3_500)
