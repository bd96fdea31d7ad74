"""
Checklist engine tests: template selection, item transitions and the
completion gate.
"""

import pytest

from coldcase.core.errors import ValidationError
from coldcase.models.enums import (
    ChecklistCategory,
    ChecklistStatus,
    ColdCaseClassification,
    ReviewStatus,
    RevivalDecision,
)
from coldcase.models.schemas import (
    ChecklistItem,
    ChecklistItemUpdate,
    ChecklistTemplate,
    ChecklistTemplateItem,
    ColdCaseReview,
    CompleteReviewRequest,
    CreateReviewRequest,
)
from coldcase.services.checklist import (
    apply_item_update,
    checklist_progress,
    default_template,
    select_template,
)
from coldcase.tests.conftest import TODAY


def _review(status: ReviewStatus = ReviewStatus.IN_PROGRESS) -> ColdCaseReview:
    return ColdCaseReview(
        profile_id="p-1",
        case_id="case-1",
        review_number=1,
        review_type="special",
        status=status,
        due_date=TODAY,
    )


def _item(status: ChecklistStatus = ChecklistStatus.PENDING) -> ChecklistItem:
    return ChecklistItem(
        review_id="r-1",
        category=ChecklistCategory.EVIDENCE,
        item_order=1,
        item_name="Review all physical evidence",
        status=status,
    )


class TestTemplates:

    def test_default_template_has_twenty_ordered_items(self) -> None:
        template = default_template()

        assert template.is_default
        assert len(template.items) == 20
        assert [i.item_order for i in template.items] == list(range(1, 21))
        assert {i.category for i in template.items} == set(ChecklistCategory)

    def test_case_type_template_preferred_over_default(self, case_factory) -> None:
        minors = ChecklistTemplate(
            name="Minor Case Review",
            case_types=["minor"],
            items=[ChecklistTemplateItem(category=ChecklistCategory.FAMILY, item_order=1,
                                         item_name="School records")],
        )
        templates = [default_template(), minors]

        assert select_template(templates, case_factory(is_minor=True)).name == "Minor Case Review"
        assert select_template(templates, case_factory()).is_default

    def test_inactive_templates_ignored(self, case_factory) -> None:
        inactive = default_template()
        inactive.is_active = False

        selected = select_template([inactive], case_factory())

        assert selected.is_default
        assert selected.id != inactive.id


class TestItemTransitions:

    @pytest.mark.parametrize(
        "start,target",
        [
            (ChecklistStatus.PENDING, ChecklistStatus.IN_PROGRESS),
            (ChecklistStatus.PENDING, ChecklistStatus.SKIPPED),
            (ChecklistStatus.PENDING, ChecklistStatus.NOT_APPLICABLE),
            (ChecklistStatus.IN_PROGRESS, ChecklistStatus.SKIPPED),
            (ChecklistStatus.IN_PROGRESS, ChecklistStatus.NOT_APPLICABLE),
        ],
    )
    def test_allowed_transitions(self, start, target) -> None:
        item = apply_item_update(_review(), _item(start), ChecklistItemUpdate(status=target))
        assert item.status == target

    @pytest.mark.parametrize(
        "start,target",
        [
            (ChecklistStatus.PENDING, ChecklistStatus.COMPLETED),
            (ChecklistStatus.COMPLETED, ChecklistStatus.IN_PROGRESS),
            (ChecklistStatus.SKIPPED, ChecklistStatus.PENDING),
            (ChecklistStatus.NOT_APPLICABLE, ChecklistStatus.COMPLETED),
        ],
    )
    def test_rejected_transitions(self, start, target) -> None:
        item = _item(start)

        with pytest.raises(ValidationError) as exc_info:
            apply_item_update(_review(), item, ChecklistItemUpdate(status=target, result_summary="x"))

        assert exc_info.value.code == "invalid_transition"
        assert item.status == start

    def test_completion_requires_result_summary(self) -> None:
        item = _item(ChecklistStatus.IN_PROGRESS)

        with pytest.raises(ValidationError):
            apply_item_update(_review(), item, ChecklistItemUpdate(status=ChecklistStatus.COMPLETED))
        assert item.status == ChecklistStatus.IN_PROGRESS

        apply_item_update(_review(), item, ChecklistItemUpdate(
            status=ChecklistStatus.COMPLETED, result_summary="Evidence re-logged", updated_by="det-1",
        ))
        assert item.status == ChecklistStatus.COMPLETED
        assert item.completed_by == "det-1"
        assert item.completed_at is not None

    def test_action_required_needs_description(self) -> None:
        item = _item(ChecklistStatus.IN_PROGRESS)

        with pytest.raises(ValidationError):
            apply_item_update(_review(), item, ChecklistItemUpdate(action_required=True))
        assert item.action_required is False

        apply_item_update(_review(), item, ChecklistItemUpdate(
            action_required=True, action_description="Request lab re-test",
        ))
        assert item.action_required is True

    def test_items_read_only_on_closed_review(self) -> None:
        item = _item()

        with pytest.raises(ValidationError):
            apply_item_update(
                _review(ReviewStatus.COMPLETED), item, ChecklistItemUpdate(notes="late note")
            )
        assert item.notes is None

    def test_progress_counts(self) -> None:
        items = [_item(), _item(ChecklistStatus.IN_PROGRESS), _item(ChecklistStatus.SKIPPED)]

        progress = checklist_progress(items)

        assert progress["total"] == 3
        assert progress["terminal"] == 1
        assert progress[ChecklistStatus.PENDING.value] == 1


@pytest.mark.asyncio
class TestCompletionGate:

    async def test_open_item_blocks_completion(self, coordinator, case_factory, reviewer_request) -> None:
        await coordinator.upsert_case(case_factory())
        profile = coordinator.store.profile_for_case("case-1")
        await coordinator.register_reviewer(reviewer_request())
        review = await coordinator.create_review(CreateReviewRequest(profile_id=profile.id))
        await coordinator.start_review(review.id)

        items = coordinator.store.checklist_for(review.id)
        for item in items[1:]:
            await coordinator.update_checklist_item(
                review.id, item.id, ChecklistItemUpdate(status=ChecklistStatus.SKIPPED)
            )
        await coordinator.update_checklist_item(
            review.id, items[0].id, ChecklistItemUpdate(status=ChecklistStatus.IN_PROGRESS)
        )
        version = profile.version

        with pytest.raises(ValidationError) as exc_info:
            await coordinator.complete_review(review.id, CompleteReviewRequest(
                revival_decision=RevivalDecision.MAINTAIN_COLD,
                summary="Done",
            ))

        assert exc_info.value.code == "checklist_incomplete"
        assert review.status == ReviewStatus.IN_PROGRESS
        assert review.completed_at is None
        assert profile.classification == ColdCaseClassification.UNDER_REVIEW
        assert profile.version == version

    async def test_campaign_recommendation_needs_type(
        self, coordinator, case_factory, reviewer_request
    ) -> None:
        await coordinator.upsert_case(case_factory())
        profile = coordinator.store.profile_for_case("case-1")
        await coordinator.register_reviewer(reviewer_request())
        review = await coordinator.create_review(CreateReviewRequest(profile_id=profile.id))
        await coordinator.start_review(review.id)
        for item in coordinator.store.checklist_for(review.id):
            await coordinator.update_checklist_item(
                review.id, item.id, ChecklistItemUpdate(status=ChecklistStatus.NOT_APPLICABLE)
            )

        with pytest.raises(ValidationError):
            await coordinator.complete_review(review.id, CompleteReviewRequest(
                revival_decision=RevivalDecision.MAINTAIN_COLD,
                summary="Done",
                campaign_recommended=True,
            ))
        assert review.status == ReviewStatus.IN_PROGRESS
