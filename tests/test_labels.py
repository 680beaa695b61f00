"""Unit tests for deal status labels, filter expansion and dealstage mapping."""

from __future__ import annotations

from datetime import date

import pytest

from src.sow_portal.deals.dealstage import (
    DEALSTAGE_MAPPING,
    get_dealstage_category,
    get_dealstage_label,
)
from src.sow_portal.deals.labels import (
    PRE_SUBMISSION_STAGES,
    SOW_SUBMISSION_PENDING_FILTER,
    STATUS_FILTER_OPTIONS,
    expand_status_filter,
    get_phase_display_label,
    get_status_badge,
    get_status_label,
)
from src.sow_portal.deals.progress import DealPhase, DealStatus, SowGenProgress
from src.sow_portal.deals.schemas import Deal, DealListFilter


class TestStatusLabels:
    """Tests for STATUS_LABELS lookups."""

    def test_review_status_labels(self):
        assert get_status_label(DealStatus.TECHNICAL_REVIEW) == "Pending Review (Technical)"
        assert get_status_label("SOW_APPROVED_TECHNICALLY") == "Deal Desk Pending"
        assert get_status_label("SOW_FLAGGED_FOR_REWORK_DEAL_DESK") == "Rework (Deal Desk)"

    def test_progress_labels(self):
        assert get_status_label(SowGenProgress.READY_FOR_SUBMISSION) == "Ready for Submission"
        assert get_status_label("NOT_STARTED") == "Not Started"

    def test_shared_sow_in_progress_value(self):
        """Phase and progress share SOW_IN_PROGRESS and render the same label."""
        assert get_status_label(DealPhase.SOW_IN_PROGRESS) == "SOW In Progress"
        assert get_status_label(SowGenProgress.SOW_IN_PROGRESS) == "SOW In Progress"

    def test_unknown_status_passes_through(self):
        assert get_status_label("BRAND_NEW_STATUS") == "BRAND_NEW_STATUS"

    def test_missing_status_is_unknown(self):
        assert get_status_label(None) == "Unknown"
        assert get_status_label("") == "Unknown"


class TestPhaseDisplayLabels:
    """Tests for the grouped phase labels used by the deals table."""

    def test_technical_statuses_group_together(self):
        for status in (
            DealStatus.TECHNICAL_REVIEW,
            DealStatus.SOW_APPROVED_TECHNICALLY,
            DealStatus.SOW_FLAGGED_FOR_REWORK_TECHNICAL,
        ):
            assert get_phase_display_label(status) == "Technical Review"

    def test_deal_desk_statuses_group_together(self):
        for status in (
            DealStatus.DEAL_DESK_REVIEW,
            DealStatus.SOW_APPROVED_ON_DEAL_DESK,
            DealStatus.SOW_FLAGGED_FOR_REWORK_DEAL_DESK,
        ):
            assert get_phase_display_label(status) == "Deal Desk Review"

    def test_pre_review_phases(self):
        assert get_phase_display_label("UN_ASSIGNED") == "Unassigned"
        assert get_phase_display_label(DealPhase.SA_ASSIGNED) == "SA Assigned"

    def test_unknown_and_missing(self):
        assert get_phase_display_label("OTHER") == "OTHER"
        assert get_phase_display_label(None) == "Unknown"


class TestStatusBadges:
    """Tests for get_status_badge."""

    def test_badge_variants(self):
        assert get_status_badge(DealStatus.SOW_APPROVED_ON_DEAL_DESK).variant == "green"
        assert get_status_badge("SOW_FLAGGED_FOR_REWORK_TECHNICAL").variant == "orange"
        assert get_status_badge("TECHNICAL_REVIEW").label == "Pending Review"

    def test_every_review_status_has_a_badge(self):
        for status in DealStatus:
            assert get_status_badge(status) is not None

    def test_phases_have_no_badge(self):
        assert get_status_badge("SA_ASSIGNED") is None
        assert get_status_badge(None) is None


class TestStatusFilter:
    """Tests for the pending-submission filter sentinel."""

    def test_sentinel_is_first_option(self):
        assert STATUS_FILTER_OPTIONS[0].value == SOW_SUBMISSION_PENDING_FILTER

    def test_sentinel_expands_to_pre_submission_stages(self):
        assert expand_status_filter([SOW_SUBMISSION_PENDING_FILTER]) == list(PRE_SUBMISSION_STAGES)

    def test_order_preserved_and_duplicates_dropped(self):
        result = expand_status_filter(
            ["TECHNICAL_REVIEW", SOW_SUBMISSION_PENDING_FILTER, "SA_ASSIGNED", "TECHNICAL_REVIEW"]
        )
        assert result == ["TECHNICAL_REVIEW", "SA_ASSIGNED", "SOW_IN_PROGRESS"]

    def test_empty_input(self):
        assert expand_status_filter(None) == []
        assert expand_status_filter([]) == []


class TestDealstageMapping:
    """Tests for the HubSpot dealstage lookups."""

    def test_known_ids(self):
        assert get_dealstage_label("12717221") == "Technical Validation"
        assert get_dealstage_label("closedlost") == "Closed Lost"
        assert get_dealstage_label("996305758") == "Closed Won"

    def test_unknown_id_passes_through(self):
        assert get_dealstage_label("123") == "123"
        assert get_dealstage_label(None) == "Unknown"

    @pytest.mark.parametrize(
        "dealstage_id,category",
        [
            ("254222995", "early"),
            ("996305754", "early"),
            ("12717221", "mid"),
            ("presentationscheduled", "late"),
            ("996305757", "late"),
            ("decisionmakerboughtin", "won"),
            ("996305758", "won"),
            ("closedlost", "lost"),
            ("1162733091", "unknown"),
            ("not-mapped", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_categories(self, dealstage_id, category):
        assert get_dealstage_category(dealstage_id) == category

    def test_every_pipeline_maps_closed_lost(self):
        lost = [key for key, label in DEALSTAGE_MAPPING.items() if label == "Closed Lost"]
        assert len(lost) >= 6
        assert all(get_dealstage_category(key) == "lost" for key in lost)


class TestDealSchemas:
    """Tests for deal parsing and list filter rendering."""

    def test_amount_parses_from_string(self):
        deal = Deal(id="1", dealname="Acme", amount="125000.5")
        assert deal.amount == 125000.5

    def test_blank_or_garbage_amount_is_none(self):
        assert Deal(id="1", dealname="Acme", amount="").amount is None
        assert Deal(id="1", dealname="Acme", amount="n/a").amount is None

    def test_filter_defaults_only_send_limit(self):
        assert DealListFilter().to_params() == {"limit": 20}

    def test_filter_joins_multi_values_and_formats_dates(self):
        params = DealListFilter(
            limit=50,
            q="acme",
            phase_status=["TECHNICAL_REVIEW", "SA_ASSIGNED"],
            owner_ids=["o1", "o2"],
            unassigned_only=True,
            target_date_start=date(2025, 1, 1),
            target_date_end=date(2025, 3, 31),
        ).to_params()
        assert params == {
            "limit": 50,
            "q": "acme",
            "phase_status": "TECHNICAL_REVIEW,SA_ASSIGNED",
            "owner_ids": "o1,o2",
            "unassigned_only": "true",
            "target_date_start": "2025-01-01",
            "target_date_end": "2025-03-31",
        }
