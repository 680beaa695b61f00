"""HubSpot dealstage ID to label mapping across the company's pipelines."""

from __future__ import annotations

from typing import Literal

DealstageCategory = Literal["early", "mid", "late", "won", "lost", "unknown"]

DEALSTAGE_MAPPING: dict[str, str] = {
    # ProServe pipeline (default)
    "254222995": "Prospect",
    "appointmentscheduled": "Qualified",
    "12717221": "Technical Validation",
    "qualifiedtobuy": "Business Validation",
    "presentationscheduled": "Committed",
    "decisionmakerboughtin": "Launched",
    "closedlost": "Closed Lost",
    # Assessment pipeline
    "973153932": "Prospect",
    "944422754": "Qualified",
    "944422755": "Technical Validation",
    "944422756": "Business Validation",
    "944422757": "Committed",
    "944422758": "Launched",
    "944422760": "Closed Lost",
    # FinOps pipeline
    "947336060": "Prospect",
    "947336062": "Qualified",
    "947336061": "Technical Validation",
    "947336063": "Business Validation",
    "947336064": "Committed",
    "1072179209": "Launched",
    "947336066": "Closed Lost",
    # Managed Services pipeline
    "991798408": "Prospect",
    "991798410": "Qualified",
    "991798409": "Technical Validation",
    "991798411": "Business Validation",
    "991798412": "Committed",
    "992053529": "Launched",
    "991798414": "Closed Lost",
    # ACE - Need Assignment pipeline
    "960066315": "NEW AO - To Be Assigned",
    "960066321": "Closed Lost",
    "1062952749": "Duplicates",
    # Partner Opportunities pipeline
    "996305753": "Appointment Scheduled",
    "996305754": "Qualified To Buy",
    "996305755": "Presentation Scheduled",
    "996305756": "Decision Maker Bought-In",
    "996305757": "Contract Sent",
    "996305758": "Closed Won",
    "996305759": "Closed Lost",
    # Closed Lost - Follow Up pipeline
    "1162733091": "Immediate Follow Up",
    "1162733092": "30 Day Follow Up",
    "1162733093": "90 Day Follow Up",
}


def get_dealstage_label(dealstage_id: str | None) -> str:
    """Human-readable label, or the raw ID when it is not mapped."""
    if not dealstage_id:
        return "Unknown"
    return DEALSTAGE_MAPPING.get(dealstage_id, dealstage_id)


def get_dealstage_category(dealstage_id: str | None) -> DealstageCategory:
    """Coarse stage bucket used for styling and filtering.

    Checks run in order, so "Closed Lost" is lost before anything else
    and "Qualified To Buy" is early.
    """
    if not dealstage_id:
        return "unknown"

    label = get_dealstage_label(dealstage_id).lower()

    if "lost" in label:
        return "lost"
    if "won" in label or "launched" in label:
        return "won"
    if "prospect" in label or "qualified" in label:
        return "early"
    if "validation" in label:
        return "mid"
    if "committed" in label or "contract" in label:
        return "late"
    return "unknown"
