"""
Checklist Engine Service

Instantiates the structured review checklist when a review is created and
validates every item update.

Templates:
- The default "Standard Cold Case Review" template has 20 items across
  evidence, witnesses, technology, databases, family, media, crossref and
  admin categories.
- A template whose case_types match the case flags (minor, indigenous,
  high_vulnerability) takes precedence over the default.

Item transitions:
    pending     -> in_progress | skipped | not_applicable
    in_progress -> completed | skipped | not_applicable
Terminal states (completed, skipped, not_applicable) never change again.

Rules:
- completed requires a result_summary
- action_required=true requires an action_description
- items are only updatable while the owning review is open
- items have no ordering dependency on each other
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Set

from coldcase.core.errors import ValidationError
from coldcase.core.timeutil import utc_now
from coldcase.models.enums import ChecklistCategory, ChecklistStatus
from coldcase.models.schemas import (
    CaseRecord,
    ChecklistItem,
    ChecklistItemUpdate,
    ChecklistTemplate,
    ChecklistTemplateItem,
    ColdCaseReview,
)


logger = logging.getLogger(__name__)


DEFAULT_TEMPLATE_NAME = "Standard Cold Case Review"

TERMINAL_STATUSES = frozenset({
    ChecklistStatus.COMPLETED,
    ChecklistStatus.SKIPPED,
    ChecklistStatus.NOT_APPLICABLE,
})

ALLOWED_TRANSITIONS: Dict[ChecklistStatus, Set[ChecklistStatus]] = {
    ChecklistStatus.PENDING: {
        ChecklistStatus.IN_PROGRESS,
        ChecklistStatus.SKIPPED,
        ChecklistStatus.NOT_APPLICABLE,
    },
    ChecklistStatus.IN_PROGRESS: {
        ChecklistStatus.COMPLETED,
        ChecklistStatus.SKIPPED,
        ChecklistStatus.NOT_APPLICABLE,
    },
}


# =============================================================================
# Default Template
# =============================================================================

_DEFAULT_ITEMS = [
    (ChecklistCategory.EVIDENCE, "Review all physical evidence",
     "Inventory and re-examine all physical evidence held for the case"),
    (ChecklistCategory.EVIDENCE, "Check for new forensic techniques",
     "Identify forensic techniques developed since the last examination"),
    (ChecklistCategory.EVIDENCE, "DNA evidence assessment",
     "Assess available DNA samples and eligibility for (re)submission"),
    (ChecklistCategory.WITNESSES, "Re-interview key witnesses",
     "Contact and re-interview witnesses from the original investigation"),
    (ChecklistCategory.WITNESSES, "Identify new potential witnesses",
     "Look for people not previously interviewed"),
    (ChecklistCategory.TECHNOLOGY, "Social media analysis",
     "Review social media accounts and activity related to the person"),
    (ChecklistCategory.TECHNOLOGY, "Digital footprint check",
     "Check phone, banking and online account activity"),
    (ChecklistCategory.TECHNOLOGY, "Surveillance footage review",
     "Identify any surviving or newly available footage"),
    (ChecklistCategory.DATABASES, "CPIC/NCIC database check",
     "Query national police information databases"),
    (ChecklistCategory.DATABASES, "NamUs comparison",
     "Compare against unidentified persons records"),
    (ChecklistCategory.DATABASES, "Hospital/morgue records",
     "Check hospital admissions and coroner records"),
    (ChecklistCategory.DATABASES, "Incarceration records",
     "Check correctional facility records"),
    (ChecklistCategory.FAMILY, "Family contact",
     "Update the family on the review and gather new information"),
    (ChecklistCategory.FAMILY, "Obtain updated family DNA",
     "Request reference samples from additional family members"),
    (ChecklistCategory.MEDIA, "Assess publicity opportunities",
     "Evaluate campaign and media options for the case"),
    (ChecklistCategory.MEDIA, "Social media re-engagement plan",
     "Plan renewed social media outreach"),
    (ChecklistCategory.CROSSREF, "Cross-reference with resolved cases",
     "Compare against recently resolved cases for links"),
    (ChecklistCategory.CROSSREF, "Pattern analysis review",
     "Review pattern matches and cluster membership"),
    (ChecklistCategory.ADMIN, "Case file digitization status",
     "Confirm the case file is fully digitized"),
    (ChecklistCategory.ADMIN, "Resource allocation review",
     "Assess resources needed to pursue the case"),
]


def default_template() -> ChecklistTemplate:
    return ChecklistTemplate(
        name=DEFAULT_TEMPLATE_NAME,
        description="Default checklist applied to every cold case review",
        items=[
            ChecklistTemplateItem(
                category=category,
                item_order=order,
                item_name=name,
                item_description=description,
            )
            for order, (category, name, description) in enumerate(_DEFAULT_ITEMS, start=1)
        ],
        is_default=True,
    )


# =============================================================================
# Template selection and instantiation
# =============================================================================

def case_types_for(case: CaseRecord) -> Set[str]:
    types = set()
    if case.is_minor:
        types.add("minor")
    if case.is_indigenous:
        types.add("indigenous")
    if case.is_high_vulnerability:
        types.add("high_vulnerability")
    return types


def select_template(
    templates: List[ChecklistTemplate],
    case: CaseRecord,
) -> ChecklistTemplate:
    """
    Pick the checklist template for a case.

    The active template sharing the most case types with the case wins,
    ties broken by name. Falls back to the active default template, then to
    the built-in default.
    """
    flags = case_types_for(case)
    active = [t for t in templates if t.is_active]

    specific = [t for t in active if flags & set(t.case_types)]
    if specific:
        specific.sort(key=lambda t: (-len(flags & set(t.case_types)), t.name))
        return specific[0]

    defaults = sorted((t for t in active if t.is_default), key=lambda t: t.name)
    if defaults:
        return defaults[0]
    return default_template()


def instantiate_checklist(review: ColdCaseReview, template: ChecklistTemplate) -> List[ChecklistItem]:
    """Create pending checklist items for a review, preserving category and order."""
    return [
        ChecklistItem(
            review_id=review.id,
            category=entry.category,
            item_order=entry.item_order,
            item_name=entry.item_name,
            item_description=entry.item_description,
        )
        for entry in sorted(template.items, key=lambda e: e.item_order)
    ]


# =============================================================================
# Item updates
# =============================================================================

def is_terminal(status: ChecklistStatus) -> bool:
    return status in TERMINAL_STATUSES


def non_terminal_items(items: List[ChecklistItem]) -> List[ChecklistItem]:
    return [i for i in items if not is_terminal(i.status)]


def validate_item_update(
    review: ColdCaseReview,
    item: ChecklistItem,
    update: ChecklistItemUpdate,
) -> None:
    """
    Validate a checklist item update without mutating anything.

    Raises:
        ValidationError: if the review is closed, the transition is not
            allowed, or a required field is missing
    """
    if not review.is_open:
        raise ValidationError(
            f"Review {review.id} is {review.status.value}; checklist items are read-only"
        )

    target = update.status or item.status
    if target != item.status:
        if target not in ALLOWED_TRANSITIONS.get(item.status, set()):
            raise ValidationError(
                f"Checklist item cannot move from {item.status.value} to {target.value}",
                code="invalid_transition",
            )

    result_summary = update.result_summary if update.result_summary is not None else item.result_summary
    if target == ChecklistStatus.COMPLETED and not (result_summary or "").strip():
        raise ValidationError("A completed checklist item requires a result summary")

    action_required = update.action_required if update.action_required is not None else item.action_required
    action_description = (
        update.action_description if update.action_description is not None else item.action_description
    )
    if action_required and not (action_description or "").strip():
        raise ValidationError("action_required items need an action description")


def apply_item_update(
    review: ColdCaseReview,
    item: ChecklistItem,
    update: ChecklistItemUpdate,
    now: Optional[datetime] = None,
) -> ChecklistItem:
    """
    Validate then apply an update to a checklist item.

    Validation runs completely before the item is touched, so a rejected
    update leaves it unchanged.
    """
    validate_item_update(review, item, update)
    now = now or utc_now()

    previous = item.status
    for name in ("result_summary", "findings", "action_required", "action_description", "notes"):
        value = getattr(update, name)
        if value is not None:
            setattr(item, name, value)

    if update.status is not None and update.status != previous:
        item.status = update.status
        if is_terminal(update.status):
            item.completed_at = now
            item.completed_by = update.updated_by
        logger.info(
            f"Checklist item '{item.item_name}' on review {review.id}: "
            f"{previous.value} -> {item.status.value}"
        )

    item.updated_at = now
    return item


def checklist_progress(items: List[ChecklistItem]) -> Dict[str, int]:
    """Counts per status plus total and terminal counts."""
    progress = {status.value: 0 for status in ChecklistStatus}
    for item in items:
        progress[item.status.value] += 1
    progress["total"] = len(items)
    progress["terminal"] = sum(1 for i in items if is_terminal(i.status))
    return progress
