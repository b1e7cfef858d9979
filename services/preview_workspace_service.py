"""
Preview workspace service.

Server-side editing of a cached upload preview: grouped view, category
management, drag-and-drop reassignment, inline edits and per-item
decisions. The flat parsed_items list is authoritative; the grouped view
is always recomputed from it.

Category operations report rejections as CategoryChangeResult data.
Missing previews or items raise, since those are request errors.
"""

from typing import Any, Optional

import structlog

from exceptions import PreviewItemNotFoundError, PreviewNotFoundError
from models.menu_upload import (
    CategoryChangeResult,
    CategoryGroup,
    GroupedPreviewView,
    ImportAction,
    ItemStatus,
    MenuUploadPreview,
    ParsedMenuItem,
    UserAction,
    WineServingOption,
)
from services import preview_cache_service, reconciliation_service
from utils.text_utils import UNCATEGORIZED, normalize_category

logger = structlog.get_logger(__name__)


# ===================
# GROUPING
# ===================

def item_category(item: ParsedMenuItem) -> str:
    """Canonical category of an item (its grouping key)."""
    return normalize_category(item.field_value("category"))


def build_category_order(categories: list[str], items: list[ParsedMenuItem]) -> list[str]:
    """
    Display order of categories.

    Alphabetical, "Uncategorized" always last. Includes every category in
    the set, empty or not, plus any category an item points to.
    """
    names = set(categories)
    names.update(item_category(item) for item in items)
    names.discard(UNCATEGORIZED)
    return sorted(names, key=lambda name: (name.lower(), name)) + [UNCATEGORIZED]


def group_items(preview: MenuUploadPreview) -> GroupedPreviewView:
    """Project the flat item list into per-category food/beverage and wine tables."""
    order = build_category_order(preview.categories, preview.parsed_items)
    groups = {
        name: CategoryGroup(name=name, is_expanded=preview.expanded_categories.get(name, False))
        for name in order
    }

    for item in preview.parsed_items:
        group = groups[item_category(item)]
        if item.is_wine:
            group.wine_items.append(item)
        else:
            group.food_beverage_items.append(item)
        group.item_count += 1

    return GroupedPreviewView(
        preview_id=preview.preview_id,
        category_order=order,
        groups=[groups[name] for name in order]
    )


def refresh_summary(preview: MenuUploadPreview) -> None:
    preview.summary.total_items_parsed = len(preview.parsed_items)
    preview.summary.items_with_potential_errors = sum(
        1 for item in preview.parsed_items
        if item.status in (ItemStatus.ERROR, ItemStatus.ERROR_CLIENT_VALIDATION)
    )


class PreviewWorkspaceService:
    """Edits applied to a cached MenuUploadPreview."""

    # ===================
    # LOOKUPS
    # ===================

    def get_preview(self, preview_id: str) -> MenuUploadPreview:
        """
        Get a preview the user is working on.

        Raises:
            PreviewNotFoundError: If preview is unknown or expired
        """
        preview = preview_cache_service.retrieve_preview(preview_id)
        if preview is None:
            raise PreviewNotFoundError(preview_id)
        preview_cache_service.touch_preview(preview_id)
        return preview

    def get_item(self, preview: MenuUploadPreview, item_id: str) -> ParsedMenuItem:
        item = preview.find_item(item_id)
        if item is None:
            raise PreviewItemNotFoundError(item_id)
        return item

    def grouped_view(self, preview_id: str) -> GroupedPreviewView:
        return group_items(self.get_preview(preview_id))

    def _result(
        self,
        preview: MenuUploadPreview,
        success: bool,
        message: Optional[str] = None,
        requires_confirmation: bool = False,
        affected_item_ids: Optional[list[str]] = None
    ) -> CategoryChangeResult:
        return CategoryChangeResult(
            success=success,
            message=message,
            requires_confirmation=requires_confirmation,
            affected_item_ids=affected_item_ids or [],
            categories=build_category_order(preview.categories, preview.parsed_items)
        )

    def _ensure_category(self, preview: MenuUploadPreview, name: str) -> None:
        if name not in preview.categories:
            preview.categories.append(name)

    # ===================
    # ITEM EDITS
    # ===================

    def edit_field(
        self,
        preview_id: str,
        item_id: str,
        field_name: str,
        value: Any
    ) -> ParsedMenuItem:
        """
        Inline edit of one field.

        Category edits are canonicalized and join the category set, so the
        grouped view never holds a variant spelling.
        """
        preview = self.get_preview(preview_id)
        item = self.get_item(preview, item_id)

        if field_name == "category":
            value = normalize_category(value)
            self._ensure_category(preview, value)

        reconciliation_service.apply_field_edit(item, field_name, value)
        refresh_summary(preview)
        return item

    def set_user_action(self, preview_id: str, item_id: str, action: UserAction) -> ParsedMenuItem:
        preview = self.get_preview(preview_id)
        item = self.get_item(preview, item_id)
        reconciliation_service.set_user_action(item, action)
        refresh_summary(preview)

        logger.info(
            "user_action_changed",
            preview_id=preview_id,
            item_id=item_id,
            user_action=action.value,
            import_action=item.import_action.value if item.import_action else None
        )
        return item

    def set_import_action(
        self,
        preview_id: str,
        item_id: str,
        action: ImportAction,
        existing_item_id: Optional[str] = None
    ) -> ParsedMenuItem:
        """
        Raises:
            InvalidImportActionError: If update has no valid target
        """
        preview = self.get_preview(preview_id)
        item = self.get_item(preview, item_id)
        reconciliation_service.set_import_action(item, action, existing_item_id)
        refresh_summary(preview)
        return item

    def move_item(self, preview_id: str, item_id: str, category: str) -> CategoryChangeResult:
        """
        Drag-and-drop reassignment.

        The drop target must already be in the category set. The
        destination is expanded so the moved item stays visible.
        """
        preview = self.get_preview(preview_id)
        item = self.get_item(preview, item_id)
        target = normalize_category(category)

        if target not in preview.categories:
            return self._result(preview, False, f"Category '{target}' does not exist.")

        if item_category(item) != target:
            reconciliation_service.apply_field_edit(item, "category", target)
            refresh_summary(preview)

        preview.expanded_categories[target] = True

        logger.info("item_moved", preview_id=preview_id, item_id=item_id, category=target)
        return self._result(preview, True, affected_item_ids=[item_id])

    # ===================
    # SERVING OPTIONS
    # ===================

    def add_serving_option(
        self,
        preview_id: str,
        item_id: str,
        size: str = "",
        price: Any = None
    ) -> WineServingOption:
        preview = self.get_preview(preview_id)
        item = self.get_item(preview, item_id)
        option = reconciliation_service.add_serving_option(item, size, price)
        refresh_summary(preview)
        return option

    def update_serving_option(
        self,
        preview_id: str,
        item_id: str,
        option_id: str,
        **changes: Any
    ) -> WineServingOption:
        """Only "size" and "price" are accepted as changes."""
        preview = self.get_preview(preview_id)
        item = self.get_item(preview, item_id)
        allowed = {key: value for key, value in changes.items() if key in ("size", "price")}
        option = reconciliation_service.update_serving_option(item, option_id, **allowed)
        refresh_summary(preview)
        return option

    def remove_serving_option(self, preview_id: str, item_id: str, option_id: str) -> ParsedMenuItem:
        preview = self.get_preview(preview_id)
        item = self.get_item(preview, item_id)
        reconciliation_service.remove_serving_option(item, option_id)
        refresh_summary(preview)
        return item

    # ===================
    # CATEGORIES
    # ===================

    def add_category(self, preview_id: str, name: str) -> CategoryChangeResult:
        preview = self.get_preview(preview_id)

        if not name or not name.strip():
            return self._result(preview, False, "Category name cannot be empty.")

        normalized = normalize_category(name)
        if normalized in preview.categories:
            return self._result(preview, False, f"Category '{normalized}' already exists.")

        preview.categories.append(normalized)
        preview.expanded_categories[normalized] = True

        logger.info("category_added", preview_id=preview_id, category=normalized)
        return self._result(preview, True)

    def rename_category(self, preview_id: str, old_name: str, new_name: str) -> CategoryChangeResult:
        """
        Rename a category and move its items along.

        Rejected when the new name is empty or collapses onto another
        existing category after normalization. Renaming to the same
        canonical name is a successful no-op.
        """
        preview = self.get_preview(preview_id)
        old = normalize_category(old_name)

        if old not in preview.categories:
            return self._result(preview, False, f"Category '{old}' does not exist.")
        if old == UNCATEGORIZED:
            return self._result(preview, False, f"'{UNCATEGORIZED}' cannot be renamed.")
        if not new_name or not new_name.strip():
            return self._result(preview, False, "Category name cannot be empty.")

        new = normalize_category(new_name)
        if new == old:
            return self._result(preview, True, "Category name unchanged.")
        if new in preview.categories:
            return self._result(
                preview,
                False,
                f"A category named '{new}' already exists. Choose a different name."
            )

        affected = [item for item in preview.parsed_items if item_category(item) == old]
        for item in affected:
            reconciliation_service.apply_field_edit(item, "category", new)

        preview.categories[preview.categories.index(old)] = new
        preview.expanded_categories[new] = preview.expanded_categories.pop(old, False)
        refresh_summary(preview)

        logger.info(
            "category_renamed",
            preview_id=preview_id,
            old_name=old,
            new_name=new,
            items_moved=len(affected)
        )
        return self._result(preview, True, affected_item_ids=[item.id for item in affected])

    def delete_category(self, preview_id: str, name: str, confirm: bool = False) -> CategoryChangeResult:
        """
        Delete a category.

        "Uncategorized" is protected. A category that still holds items is
        only deleted with confirm=True; its items move to "Uncategorized".
        """
        preview = self.get_preview(preview_id)
        target = normalize_category(name)

        if target == UNCATEGORIZED:
            return self._result(preview, False, f"'{UNCATEGORIZED}' cannot be deleted.")
        if target not in preview.categories:
            return self._result(preview, False, f"Category '{target}' does not exist.")

        affected = [item for item in preview.parsed_items if item_category(item) == target]
        affected_ids = [item.id for item in affected]

        if affected and not confirm:
            return self._result(
                preview,
                False,
                f"Category '{target}' contains {len(affected)} item(s). "
                f"Confirm to move them to '{UNCATEGORIZED}' and delete the category.",
                requires_confirmation=True,
                affected_item_ids=affected_ids
            )

        for item in affected:
            reconciliation_service.apply_field_edit(item, "category", UNCATEGORIZED)

        preview.categories.remove(target)
        preview.expanded_categories.pop(target, None)
        self._ensure_category(preview, UNCATEGORIZED)
        refresh_summary(preview)

        logger.info(
            "category_deleted",
            preview_id=preview_id,
            category=target,
            items_moved=len(affected)
        )
        return self._result(preview, True, affected_item_ids=affected_ids)

    def toggle_category(self, preview_id: str, name: str) -> CategoryChangeResult:
        """Flip the expansion state. Items are not touched."""
        preview = self.get_preview(preview_id)
        target = normalize_category(name)

        if target not in build_category_order(preview.categories, preview.parsed_items):
            return self._result(preview, False, f"Category '{target}' does not exist.")

        expanded = not preview.expanded_categories.get(target, False)
        preview.expanded_categories[target] = expanded
        return self._result(preview, True, "expanded" if expanded else "collapsed")


# Singleton instance
_preview_workspace_service: Optional[PreviewWorkspaceService] = None


def get_preview_workspace_service() -> PreviewWorkspaceService:
    """Get or create preview workspace service instance."""
    global _preview_workspace_service
    if _preview_workspace_service is None:
        _preview_workspace_service = PreviewWorkspaceService()
    return _preview_workspace_service
