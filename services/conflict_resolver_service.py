"""
Conflict resolver.

Matches parsed items against the stored menu items of a restaurant
(optionally a single menu) and annotates each item with a
ConflictResolution. Read-only: the store is queried once per batch and
never written.

Matching:
    key          normalize_item_name(name)
    tie-breaker  normalize_category(category), only when the name matches
                 more than one stored item
"""

from collections import defaultdict
from typing import Optional

import structlog

from exceptions import MenuItemDataError, MissingScopeError
from models.menu_upload import (
    ConflictResolution,
    ConflictStatus,
    ParsedMenuItem,
    ProcessConflictsResponse,
    ProcessConflictsSummary,
    UserAction,
)
from services import reconciliation_service
from services.menu_service import MenuService, get_menu_service
from services.preview_workspace_service import (
    PreviewWorkspaceService,
    get_preview_workspace_service,
    refresh_summary,
)
from utils.text_utils import normalize_category, normalize_item_name

logger = structlog.get_logger(__name__)


def _index_by_name(rows: list[dict]) -> dict[str, list[dict]]:
    index: dict[str, list[dict]] = defaultdict(list)
    for row in rows:
        key = normalize_item_name(row.get("name"))
        if key:
            index[key].append(row)
    return index


def match_item(item: ParsedMenuItem, index: dict[str, list[dict]]) -> ConflictResolution:
    """
    Resolve one item against the name index.

    Raises:
        MenuItemDataError: If the item has no usable name
    """
    name = item.name.strip()
    key = normalize_item_name(name)
    if not key:
        raise MenuItemDataError("Item name is empty, cannot process for conflicts.", field="name")

    matches = index.get(key, [])
    if len(matches) > 1:
        category = normalize_category(item.field_value("category"))
        same_category = [
            row for row in matches
            if normalize_category(row.get("category")) == category
        ]
        if same_category:
            matches = same_category

    versions = {str(row["id"]): str(row.get("updated_at") or "") for row in matches}

    if not matches:
        return ConflictResolution(status=ConflictStatus.NO_CONFLICT)

    if len(matches) == 1:
        row = matches[0]
        return ConflictResolution(
            status=ConflictStatus.UPDATE_CANDIDATE,
            message=f'One existing item found with name "{row.get("name")}".',
            existing_item_id=str(row["id"]),
            candidate_item_ids=[str(row["id"])],
            item_versions=versions
        )

    candidate_ids = sorted(versions)
    return ConflictResolution(
        status=ConflictStatus.MULTIPLE_CANDIDATES,
        message=f"{len(candidate_ids)} existing items found with similar names. Please review.",
        candidate_item_ids=candidate_ids,
        item_versions=versions
    )


class ConflictResolverService:
    """Conflict checks of parsed items against the menu store."""

    def __init__(
        self,
        menu_service: Optional[MenuService] = None,
        workspace: Optional[PreviewWorkspaceService] = None
    ):
        self.menu_service = menu_service or get_menu_service()
        self.workspace = workspace or get_preview_workspace_service()

    def resolve(
        self,
        items: list[ParsedMenuItem],
        restaurant_id: str,
        target_menu_id: Optional[str] = None
    ) -> ProcessConflictsResponse:
        """
        Annotate a batch of items with conflict resolutions.

        The input items are not modified; the response carries copies with
        conflict_resolution set and import_action/existing_item_id filled
        where the user has not chosen them.

        Args:
            items: Parsed items (field-invalid items included)
            restaurant_id: Scope of the existing items
            target_menu_id: Restrict matching to one menu

        Returns:
            ProcessConflictsResponse with one processed item per input item

        Raises:
            MissingScopeError: If restaurant_id is missing
            MenuNotFoundError: If target menu doesn't belong to the restaurant
        """
        if not restaurant_id:
            raise MissingScopeError("Invalid or missing restaurant ID for conflict resolution.")

        logger.info(
            "conflict_check_started",
            restaurant_id=restaurant_id,
            target_menu_id=target_menu_id,
            item_count=len(items)
        )

        if target_menu_id:
            self.menu_service.get_menu(target_menu_id, restaurant_id)

        index = _index_by_name(self.menu_service.list_items(restaurant_id, target_menu_id))

        summary = ProcessConflictsSummary(total_processed=len(items))
        processed: list[ParsedMenuItem] = []

        for item in items:
            if item.user_action == UserAction.IGNORE:
                resolution = ConflictResolution(status=ConflictStatus.SKIPPED_BY_USER)
            else:
                try:
                    resolution = match_item(item, index)
                except Exception as e:
                    logger.warning(
                        "conflict_check_item_failed",
                        item_id=item.id,
                        name=item.field_value("name"),
                        error=str(e)
                    )
                    resolution = ConflictResolution(
                        status=ConflictStatus.ERROR_PROCESSING_CONFLICT,
                        message=f"Error during conflict check: {e}"
                    )

            if resolution.status == ConflictStatus.NO_CONFLICT:
                summary.new_items_confirmed += 1
            elif resolution.status == ConflictStatus.UPDATE_CANDIDATE:
                summary.potential_updates_identified += 1
            elif resolution.status in (
                ConflictStatus.MULTIPLE_CANDIDATES,
                ConflictStatus.ERROR_PROCESSING_CONFLICT,
            ):
                summary.items_requiring_user_action += 1

            result = item.model_copy(deep=True)
            reconciliation_service.apply_conflict_resolution(result, resolution)
            processed.append(result)

        logger.info(
            "conflict_check_completed",
            restaurant_id=restaurant_id,
            total=summary.total_processed,
            new_items=summary.new_items_confirmed,
            updates=summary.potential_updates_identified,
            needs_action=summary.items_requiring_user_action
        )

        return ProcessConflictsResponse(processed_items=processed, summary=summary)

    def resolve_preview(
        self,
        preview_id: str,
        restaurant_id: str,
        target_menu_id: Optional[str] = None
    ) -> ProcessConflictsResponse:
        """
        Conflict check of a cached preview, merged back into the preview.

        Raises:
            PreviewNotFoundError: If preview is unknown or expired
        """
        preview = self.workspace.get_preview(preview_id)
        response = self.resolve(preview.parsed_items, restaurant_id, target_menu_id)

        by_id = {item.id: item for item in preview.parsed_items}
        for processed in response.processed_items:
            item = by_id.get(processed.id)
            if item is not None:
                reconciliation_service.apply_conflict_resolution(item, processed.conflict_resolution)

        refresh_summary(preview)
        return response


# Singleton instance
_conflict_resolver_service: Optional[ConflictResolverService] = None


def get_conflict_resolver_service() -> ConflictResolverService:
    """Get or create conflict resolver service instance."""
    global _conflict_resolver_service
    if _conflict_resolver_service is None:
        _conflict_resolver_service = ConflictResolverService()
    return _conflict_resolver_service
