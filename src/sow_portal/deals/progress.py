"""Generation stage projection for deal workflow gating.

The SOW backend owns ``sow_gen_progress`` and the review ``status`` of each
deal. This module only reads those strings and projects them into the
booleans the dashboard uses to enable controls, show artifacts and pick
visible tabs. Nothing here holds state; every projection is recomputed from
the latest server values.

Stage predicates are "at or past X" checks over a fixed total order.
Missing or unrecognized progress values never raise and never enable
anything: they behave like NOT_STARTED.

Role gating (Account Executives and the Artifacts tab) is evaluated on its
own and ANDed with the stage checks, never folded into the stage order.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from src.sow_portal.auth.roles import UserRole, coerce_role

# ── Enums ───────────────────────────────────────────────────────────────────


class SowGenProgress(str, Enum):
    """Backend-owned generation pipeline stage, in pipeline order."""

    NOT_STARTED = "NOT_STARTED"
    SOW_IN_PROGRESS = "SOW_IN_PROGRESS"
    SOW_GENERATED = "SOW_GENERATED"
    ARCHITECTURE_IN_PROGRESS = "ARCHITECTURE_IN_PROGRESS"
    ARCHITECTURE_GENERATED = "ARCHITECTURE_GENERATED"
    TCO_IN_PROGRESS = "TCO_IN_PROGRESS"
    TCO_GENERATED = "TCO_GENERATED"
    READY_FOR_SUBMISSION = "READY_FOR_SUBMISSION"
    SUBMITTED_FOR_REVIEW = "SUBMITTED_FOR_REVIEW"


class DealStatus(str, Enum):
    """Review workflow status, independent of generation progress."""

    TECHNICAL_REVIEW = "TECHNICAL_REVIEW"
    SOW_APPROVED_TECHNICALLY = "SOW_APPROVED_TECHNICALLY"
    DEAL_DESK_REVIEW = "DEAL_DESK_REVIEW"
    SOW_APPROVED_ON_DEAL_DESK = "SOW_APPROVED_ON_DEAL_DESK"
    SOW_FLAGGED_FOR_REWORK_TECHNICAL = "SOW_FLAGGED_FOR_REWORK_TECHNICAL"
    SOW_FLAGGED_FOR_REWORK_DEAL_DESK = "SOW_FLAGGED_FOR_REWORK_DEAL_DESK"


class DealPhase(str, Enum):
    """Pre-review phase of a deal, reported in the same ``status`` field."""

    UN_ASSIGNED = "UN_ASSIGNED"
    SA_ASSIGNED = "SA_ASSIGNED"
    SOW_IN_PROGRESS = "SOW_IN_PROGRESS"


# ── Ordering and Groups ─────────────────────────────────────────────────────

SOW_GEN_PROGRESS_ORDER: tuple[SowGenProgress, ...] = tuple(SowGenProgress)

_STAGE_INDEX: dict[SowGenProgress, int] = {
    stage: index for index, stage in enumerate(SOW_GEN_PROGRESS_ORDER)
}

REVIEW_WORKFLOW_STATUSES: frozenset[DealStatus] = frozenset(DealStatus)

TECHNICAL_REVIEW_STATUSES: frozenset[DealStatus] = frozenset({
    DealStatus.TECHNICAL_REVIEW,
    DealStatus.SOW_APPROVED_TECHNICALLY,
    DealStatus.SOW_FLAGGED_FOR_REWORK_TECHNICAL,
})

DEAL_DESK_REVIEW_STATUSES: frozenset[DealStatus] = frozenset({
    DealStatus.DEAL_DESK_REVIEW,
    DealStatus.SOW_APPROVED_ON_DEAL_DESK,
    DealStatus.SOW_FLAGGED_FOR_REWORK_DEAL_DESK,
})


# ── Coercion ────────────────────────────────────────────────────────────────


def coerce_progress(value: SowGenProgress | str | None) -> SowGenProgress | None:
    """Map a raw progress value to the enum; missing or unknown returns None."""
    if value is None or isinstance(value, SowGenProgress):
        return value
    try:
        return SowGenProgress(value)
    except ValueError:
        return None


def coerce_status(value: DealStatus | str | None) -> DealStatus | None:
    """Map a raw status value to DealStatus; phases and unknown values return None."""
    if value is None or isinstance(value, DealStatus):
        return value
    try:
        return DealStatus(value)
    except ValueError:
        return None


# ── Stage Predicates ────────────────────────────────────────────────────────


def is_at_or_past_stage(
    current: SowGenProgress | str | None,
    target: SowGenProgress | str,
) -> bool:
    """True when ``current`` is ``target`` or later in the pipeline order.

    False whenever either side is missing or not a known stage.
    """
    current_stage = coerce_progress(current)
    target_stage = coerce_progress(target)
    if current_stage is None or target_stage is None:
        return False
    return _STAGE_INDEX[current_stage] >= _STAGE_INDEX[target_stage]


def is_sow_phase_complete(progress: SowGenProgress | str | None) -> bool:
    return is_at_or_past_stage(progress, SowGenProgress.SOW_GENERATED)


def is_sow_saved_as_final(progress: SowGenProgress | str | None) -> bool:
    """The SOW was finalized, which moves the deal into the architecture step."""
    return is_at_or_past_stage(progress, SowGenProgress.ARCHITECTURE_IN_PROGRESS)


def is_architecture_enabled(progress: SowGenProgress | str | None) -> bool:
    return is_at_or_past_stage(progress, SowGenProgress.ARCHITECTURE_IN_PROGRESS)


def is_architecture_generated(progress: SowGenProgress | str | None) -> bool:
    return is_at_or_past_stage(progress, SowGenProgress.ARCHITECTURE_GENERATED)


def is_architecture_saved(progress: SowGenProgress | str | None) -> bool:
    """Architecture was finalized, which moves the deal into the TCO step."""
    return is_at_or_past_stage(progress, SowGenProgress.TCO_IN_PROGRESS)


def is_tco_enabled(progress: SowGenProgress | str | None) -> bool:
    return is_at_or_past_stage(progress, SowGenProgress.TCO_IN_PROGRESS)


def is_tco_generated(progress: SowGenProgress | str | None) -> bool:
    return is_at_or_past_stage(progress, SowGenProgress.TCO_GENERATED)


def is_ready_for_submission(progress: SowGenProgress | str | None) -> bool:
    return is_at_or_past_stage(progress, SowGenProgress.READY_FOR_SUBMISSION)


def can_submit_for_review(progress: SowGenProgress | str | None) -> bool:
    """Ready for submission but not yet submitted."""
    return is_ready_for_submission(progress) and not is_at_or_past_stage(
        progress, SowGenProgress.SUBMITTED_FOR_REVIEW
    )


def show_architecture_buttons(progress: SowGenProgress | str | None) -> bool:
    """Regenerate/save controls only make sense inside the architecture step."""
    return coerce_progress(progress) in (
        SowGenProgress.ARCHITECTURE_IN_PROGRESS,
        SowGenProgress.ARCHITECTURE_GENERATED,
    )


def should_show_cached_architecture(progress: SowGenProgress | str | None) -> bool:
    """A previously rendered diagram exists and no new one is being generated."""
    return is_at_or_past_stage(progress, SowGenProgress.ARCHITECTURE_GENERATED)


# ── Review Workflow Predicates ──────────────────────────────────────────────


def is_in_review_workflow(status: DealStatus | str | None) -> bool:
    return coerce_status(status) in REVIEW_WORKFLOW_STATUSES


def is_in_technical_review(status: DealStatus | str | None) -> bool:
    return coerce_status(status) in TECHNICAL_REVIEW_STATUSES


def is_in_deal_desk_review(status: DealStatus | str | None) -> bool:
    return coerce_status(status) in DEAL_DESK_REVIEW_STATUSES


def is_at_or_past_submitted_for_review(
    progress: SowGenProgress | str | None,
    status: DealStatus | str | None = None,
) -> bool:
    """Submitted according to either axis.

    A deal already moving through technical or deal-desk review counts as
    submitted even if its progress value lags behind.
    """
    return is_at_or_past_stage(
        progress, SowGenProgress.SUBMITTED_FOR_REVIEW
    ) or is_in_review_workflow(status)


# ── Role Gating ─────────────────────────────────────────────────────────────


def can_view_artifacts_tab(
    role: UserRole | str | None,
    status: DealStatus | str | None,
) -> bool:
    """Account Executives only see artifacts once deal desk has approved the SOW."""
    if coerce_role(role) != UserRole.AE:
        return True
    return coerce_status(status) == DealStatus.SOW_APPROVED_ON_DEAL_DESK


# ── Projection ──────────────────────────────────────────────────────────────


class StageProjection(BaseModel):
    """Every UI gate derived from one (progress, status, role) triple."""

    model_config = ConfigDict(frozen=True)

    progress: SowGenProgress | None
    status: str | None
    loaded: bool = True
    is_sow_phase_complete: bool
    is_sow_saved_as_final: bool
    is_architecture_enabled: bool
    is_architecture_generated: bool
    is_architecture_saved: bool
    is_tco_enabled: bool
    is_tco_generated: bool
    is_ready_for_submission: bool
    can_submit_for_review: bool
    is_at_or_past_submitted_for_review: bool
    is_in_review_workflow: bool
    show_architecture_buttons: bool
    should_show_cached_architecture: bool
    artifacts_tab_visible: bool


def project_stage(
    progress: SowGenProgress | str | None,
    status: DealStatus | str | None = None,
    role: UserRole | str | None = None,
) -> StageProjection:
    """Compute the full set of workflow gates for a deal."""
    stage = coerce_progress(progress)
    status_value = status.value if isinstance(status, Enum) else status
    return StageProjection(
        progress=stage,
        status=status_value,
        is_sow_phase_complete=is_sow_phase_complete(stage),
        is_sow_saved_as_final=is_sow_saved_as_final(stage),
        is_architecture_enabled=is_architecture_enabled(stage),
        is_architecture_generated=is_architecture_generated(stage),
        is_architecture_saved=is_architecture_saved(stage),
        is_tco_enabled=is_tco_enabled(stage),
        is_tco_generated=is_tco_generated(stage),
        is_ready_for_submission=is_ready_for_submission(stage),
        can_submit_for_review=can_submit_for_review(stage),
        is_at_or_past_submitted_for_review=is_at_or_past_submitted_for_review(stage, status),
        is_in_review_workflow=is_in_review_workflow(status),
        show_architecture_buttons=show_architecture_buttons(stage),
        should_show_cached_architecture=should_show_cached_architecture(stage),
        artifacts_tab_visible=can_view_artifacts_tab(role, status),
    )


def unloaded_projection() -> StageProjection:
    """Neutral projection used while progress data is unavailable.

    Every gate is closed, including the artifacts tab, so a failed load can
    never show a wrong stage.
    """
    closed = {
        name: False
        for name, field in StageProjection.model_fields.items()
        if field.annotation is bool and name != "loaded"
    }
    return StageProjection(progress=None, status=None, loaded=False, **closed)
