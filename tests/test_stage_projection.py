"""Unit tests for the generation stage projection.

Tests cover:
- is_at_or_past_stage: ordering, boundaries, unknown and missing values
- individual gates: thresholds for every stage predicate
- can_submit_for_review: both sides of the submission window
- review workflow predicates and the submitted-either-axis rule
- can_view_artifacts_tab: role gating independent of progress
- project_stage / unloaded_projection: full projection and neutral state
"""

from __future__ import annotations

import pytest

from src.sow_portal.auth.roles import UserRole
from src.sow_portal.deals.progress import (
    SOW_GEN_PROGRESS_ORDER,
    DealStatus,
    SowGenProgress,
    can_submit_for_review,
    can_view_artifacts_tab,
    coerce_progress,
    is_architecture_enabled,
    is_architecture_generated,
    is_architecture_saved,
    is_at_or_past_stage,
    is_at_or_past_submitted_for_review,
    is_in_deal_desk_review,
    is_in_review_workflow,
    is_in_technical_review,
    is_ready_for_submission,
    is_sow_phase_complete,
    is_sow_saved_as_final,
    is_tco_enabled,
    is_tco_generated,
    project_stage,
    should_show_cached_architecture,
    show_architecture_buttons,
    unloaded_projection,
)

ALL_STAGES = list(SOW_GEN_PROGRESS_ORDER)

# (predicate, first stage at which it becomes true)
THRESHOLD_GATES = [
    (is_sow_phase_complete, SowGenProgress.SOW_GENERATED),
    (is_sow_saved_as_final, SowGenProgress.ARCHITECTURE_IN_PROGRESS),
    (is_architecture_enabled, SowGenProgress.ARCHITECTURE_IN_PROGRESS),
    (is_architecture_generated, SowGenProgress.ARCHITECTURE_GENERATED),
    (is_architecture_saved, SowGenProgress.TCO_IN_PROGRESS),
    (is_tco_enabled, SowGenProgress.TCO_IN_PROGRESS),
    (is_tco_generated, SowGenProgress.TCO_GENERATED),
    (is_ready_for_submission, SowGenProgress.READY_FOR_SUBMISSION),
    (should_show_cached_architecture, SowGenProgress.ARCHITECTURE_GENERATED),
]


# ── Ordering ────────────────────────────────────────────────────────────────


class TestStageOrder:
    """Tests for the total order over SowGenProgress."""

    def test_order_starts_and_ends_at_pipeline_bounds(self):
        """NOT_STARTED is first, SUBMITTED_FOR_REVIEW is last."""
        assert SOW_GEN_PROGRESS_ORDER[0] == SowGenProgress.NOT_STARTED
        assert SOW_GEN_PROGRESS_ORDER[-1] == SowGenProgress.SUBMITTED_FOR_REVIEW
        assert len(SOW_GEN_PROGRESS_ORDER) == 9

    def test_stage_is_at_or_past_itself(self):
        """Every stage satisfies its own threshold."""
        for stage in ALL_STAGES:
            assert is_at_or_past_stage(stage, stage)

    def test_matches_index_comparison_for_every_pair(self):
        """at-or-past is exactly index(current) >= index(target)."""
        for i, current in enumerate(ALL_STAGES):
            for j, target in enumerate(ALL_STAGES):
                assert is_at_or_past_stage(current, target) is (i >= j)

    def test_accepts_raw_strings(self):
        """Backend strings are compared like the enum members."""
        assert is_at_or_past_stage("TCO_GENERATED", "ARCHITECTURE_GENERATED")
        assert not is_at_or_past_stage("SOW_IN_PROGRESS", SowGenProgress.SOW_GENERATED)

    def test_unknown_current_is_never_past_anything(self):
        """Unrecognized progress behaves like the least-privileged position."""
        for target in ALL_STAGES:
            assert not is_at_or_past_stage("SOMETHING_NEW", target)
            assert not is_at_or_past_stage(None, target)
            assert not is_at_or_past_stage("", target)

    def test_unknown_target_is_false(self):
        """An unknown threshold never passes."""
        assert not is_at_or_past_stage(SowGenProgress.SUBMITTED_FOR_REVIEW, "BOGUS")

    def test_coerce_progress(self):
        """Known strings map to the enum, anything else to None."""
        assert coerce_progress("READY_FOR_SUBMISSION") == SowGenProgress.READY_FOR_SUBMISSION
        assert coerce_progress(SowGenProgress.NOT_STARTED) == SowGenProgress.NOT_STARTED
        assert coerce_progress("ready_for_submission") is None
        assert coerce_progress(None) is None


# ── Threshold Gates ─────────────────────────────────────────────────────────


class TestThresholdGates:
    """Tests for the at-or-past gates."""

    @pytest.mark.parametrize("gate,threshold", THRESHOLD_GATES)
    def test_gate_boundary(self, gate, threshold):
        """False for every stage before the threshold, true from it on."""
        threshold_index = ALL_STAGES.index(threshold)
        for index, stage in enumerate(ALL_STAGES):
            assert gate(stage) is (index >= threshold_index), (gate.__name__, stage)

    @pytest.mark.parametrize("gate,threshold", THRESHOLD_GATES)
    def test_gate_is_monotone(self, gate, threshold):
        """Once a gate opens it stays open for every later stage."""
        values = [gate(stage) for stage in ALL_STAGES]
        first_open = values.index(True)
        assert all(values[first_open:])
        assert not any(values[:first_open])

    @pytest.mark.parametrize("gate,threshold", THRESHOLD_GATES)
    def test_gate_closed_for_unknown_progress(self, gate, threshold):
        """Missing or unknown progress never opens a gate."""
        assert gate(None) is False
        assert gate("NOT_A_STAGE") is False

    def test_tco_generated_stays_true_after_submission(self):
        """TCO generated is an at-or-past check, not an exact match."""
        assert is_tco_generated(SowGenProgress.READY_FOR_SUBMISSION)
        assert is_tco_generated(SowGenProgress.SUBMITTED_FOR_REVIEW)

    def test_architecture_buttons_only_inside_architecture_step(self):
        """Buttons show for ARCHITECTURE_IN_PROGRESS and ARCHITECTURE_GENERATED only."""
        visible = {stage for stage in ALL_STAGES if show_architecture_buttons(stage)}
        assert visible == {
            SowGenProgress.ARCHITECTURE_IN_PROGRESS,
            SowGenProgress.ARCHITECTURE_GENERATED,
        }
        assert not show_architecture_buttons(None)


# ── Submission Window ───────────────────────────────────────────────────────


class TestCanSubmitForReview:
    """Tests for the submission window [READY_FOR_SUBMISSION, SUBMITTED_FOR_REVIEW)."""

    def test_true_at_ready_for_submission(self):
        """The single stage inside the window."""
        assert can_submit_for_review(SowGenProgress.READY_FOR_SUBMISSION)

    def test_false_once_submitted(self):
        """Already submitted deals cannot be submitted again."""
        assert not can_submit_for_review(SowGenProgress.SUBMITTED_FOR_REVIEW)

    def test_false_before_ready(self):
        """Every stage before READY_FOR_SUBMISSION is outside the window."""
        for stage in ALL_STAGES[: ALL_STAGES.index(SowGenProgress.READY_FOR_SUBMISSION)]:
            assert not can_submit_for_review(stage)

    def test_false_for_unknown(self):
        assert not can_submit_for_review(None)
        assert not can_submit_for_review("LATER_STAGE")


# ── Review Workflow ─────────────────────────────────────────────────────────


class TestReviewWorkflow:
    """Tests for status-based review predicates."""

    def test_every_deal_status_is_in_review_workflow(self):
        for status in DealStatus:
            assert is_in_review_workflow(status)
            assert is_in_review_workflow(status.value)

    def test_phases_are_not_in_review_workflow(self):
        """Pre-review phases share the status field but are not review statuses."""
        for phase in ("UN_ASSIGNED", "SA_ASSIGNED", "SOW_IN_PROGRESS", None, ""):
            assert not is_in_review_workflow(phase)

    def test_technical_and_deal_desk_groups_are_disjoint(self):
        for status in DealStatus:
            assert not (is_in_technical_review(status) and is_in_deal_desk_review(status))
            assert is_in_technical_review(status) or is_in_deal_desk_review(status)

    def test_submitted_by_progress(self):
        assert is_at_or_past_submitted_for_review(SowGenProgress.SUBMITTED_FOR_REVIEW)
        assert not is_at_or_past_submitted_for_review(SowGenProgress.READY_FOR_SUBMISSION)

    def test_submitted_by_status_even_when_progress_lags(self):
        """A deal in review counts as submitted on either axis."""
        assert is_at_or_past_submitted_for_review(
            SowGenProgress.TCO_GENERATED, DealStatus.DEAL_DESK_REVIEW
        )
        assert is_at_or_past_submitted_for_review(None, "TECHNICAL_REVIEW")

    def test_not_submitted_for_phase_status(self):
        assert not is_at_or_past_submitted_for_review(
            SowGenProgress.READY_FOR_SUBMISSION, "SOW_IN_PROGRESS"
        )


# ── Role Gating ─────────────────────────────────────────────────────────────


class TestArtifactsTabGating:
    """Tests for can_view_artifacts_tab."""

    @pytest.mark.parametrize("role", [UserRole.LEADERSHIP, UserRole.SA, None, "Intern"])
    def test_non_ae_roles_always_see_artifacts(self, role):
        for status in [*DealStatus, None, "SA_ASSIGNED"]:
            assert can_view_artifacts_tab(role, status)

    def test_ae_sees_artifacts_only_after_deal_desk_approval(self):
        assert can_view_artifacts_tab(UserRole.AE, DealStatus.SOW_APPROVED_ON_DEAL_DESK)
        assert can_view_artifacts_tab("AE", "SOW_APPROVED_ON_DEAL_DESK")
        for status in DealStatus:
            if status != DealStatus.SOW_APPROVED_ON_DEAL_DESK:
                assert not can_view_artifacts_tab(UserRole.AE, status)
        assert not can_view_artifacts_tab(UserRole.AE, None)


# ── Projection ──────────────────────────────────────────────────────────────


class TestProjectStage:
    """Tests for project_stage and unloaded_projection."""

    def test_projection_matches_individual_predicates(self):
        for stage in ALL_STAGES:
            projection = project_stage(stage, DealStatus.TECHNICAL_REVIEW, UserRole.SA)
            assert projection.progress == stage
            assert projection.loaded is True
            assert projection.is_tco_enabled == is_tco_enabled(stage)
            assert projection.can_submit_for_review == can_submit_for_review(stage)
            assert projection.show_architecture_buttons == show_architecture_buttons(stage)
            assert projection.is_at_or_past_submitted_for_review is True
            assert projection.is_in_review_workflow is True

    def test_role_gating_is_independent_of_progress(self):
        """An AE at the last stage still cannot see artifacts before approval."""
        projection = project_stage(
            SowGenProgress.SUBMITTED_FOR_REVIEW, DealStatus.DEAL_DESK_REVIEW, UserRole.AE
        )
        assert projection.is_ready_for_submission is True
        assert projection.artifacts_tab_visible is False

        approved = project_stage(
            SowGenProgress.NOT_STARTED, DealStatus.SOW_APPROVED_ON_DEAL_DESK, UserRole.AE
        )
        assert approved.artifacts_tab_visible is True
        assert approved.is_sow_phase_complete is False

    def test_unknown_progress_projects_all_stage_gates_closed(self):
        projection = project_stage("MYSTERY", None, UserRole.LEADERSHIP)
        assert projection.progress is None
        assert projection.is_sow_phase_complete is False
        assert projection.is_architecture_enabled is False
        assert projection.can_submit_for_review is False
        assert projection.show_architecture_buttons is False
        assert projection.artifacts_tab_visible is True

    def test_projection_is_immutable(self):
        projection = project_stage(SowGenProgress.TCO_GENERATED)
        with pytest.raises(Exception):
            projection.is_tco_enabled = False

    def test_unloaded_projection_is_neutral(self):
        """Neutral state: not loaded, no progress, every gate closed."""
        projection = unloaded_projection()
        assert projection.loaded is False
        assert projection.progress is None
        assert projection.status is None
        gates = projection.model_dump(exclude={"progress", "status", "loaded"})
        assert gates
        assert not any(gates.values())

    def test_enum_status_is_stored_as_string(self):
        projection = project_stage(SowGenProgress.TCO_GENERATED, DealStatus.TECHNICAL_REVIEW)
        assert projection.status == "TECHNICAL_REVIEW"
