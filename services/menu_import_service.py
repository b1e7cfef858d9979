"""
Menu import finalizer.

Commits a reconciled batch of parsed items into a menu. Each item is its
own unit of work: a failing item is recorded in error_details and the
rest of the batch carries on. Batches above the async threshold are
queued as a background job and the caller polls the job.

Overall status:
    completed   no item errored
    partial     some items succeeded, some errored
    failed      the batch failed up front (menu not found / not owned),
                or every attempted item errored
"""

from typing import Optional

import structlog
from fastapi import BackgroundTasks

from config import settings
from exceptions import (
    AppError,
    InvalidImportActionError,
    MenuItemDataError,
    MenuItemNotFoundError,
    MenuNotFoundError,
    MissingScopeError,
    ValidationError,
)
from models.menu import MenuResponse
from models.menu_upload import (
    FinalizeImportRequest,
    ImportAction,
    ImportItemOutcome,
    ImportJobStatus,
    ImportOverallStatus,
    ImportResult,
    ImportResultItemDetail,
    ParsedMenuItem,
)
from services import preview_cache_service
from services.error_report_service import generate_error_report
from services.import_job_service import ImportJobService, get_import_job_service
from services.menu_service import (
    MenuService,
    get_menu_service,
    prepare_item_update,
    prepare_new_item,
)
from services.preview_workspace_service import (
    PreviewWorkspaceService,
    get_preview_workspace_service,
)
from services.reconciliation_service import effective_import_action, is_eligible_for_import

logger = structlog.get_logger(__name__)


def overall_status(succeeded: int, errored: int) -> ImportOverallStatus:
    if errored == 0:
        return ImportOverallStatus.COMPLETED
    if succeeded > 0:
        return ImportOverallStatus.PARTIAL
    return ImportOverallStatus.FAILED


class MenuImportService:
    """Finalize of menu upload previews."""

    def __init__(
        self,
        menu_service: Optional[MenuService] = None,
        job_service: Optional[ImportJobService] = None,
        workspace: Optional[PreviewWorkspaceService] = None
    ):
        self.menu_service = menu_service or get_menu_service()
        self.job_service = job_service or get_import_job_service()
        self.workspace = workspace or get_preview_workspace_service()

    # ===================
    # ENTRY POINT
    # ===================

    def finalize(
        self,
        request: FinalizeImportRequest,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> ImportResult:
        """
        Commit the eligible items of a request.

        Only items with user_action=keep and import_action create/update are
        attempted; the filter is applied here whatever the client sent.

        Args:
            request: Finalize request (items inline or taken from the preview)
            background_tasks: Where large batches are scheduled; without it
                every batch runs synchronously

        Returns:
            ImportResult, or a pending ImportResult carrying only job_id

        Raises:
            MissingScopeError: If restaurant_id is missing
            PreviewNotFoundError: If items come from an expired preview
        """
        if not request.restaurant_id:
            raise MissingScopeError("Restaurant ID is required to finalize an import.")

        items = self._collect_items(request)
        eligible = [item for item in items if is_eligible_for_import(item)]

        if not request.parsed_menu_name and request.preview_id and not request.target_menu_id:
            preview = preview_cache_service.retrieve_preview(request.preview_id)
            if preview is not None:
                request = request.model_copy(update={"parsed_menu_name": preview.parsed_menu_name})

        logger.info(
            "finalize_import_started",
            restaurant_id=request.restaurant_id,
            target_menu_id=request.target_menu_id,
            received=len(items),
            eligible=len(eligible),
            replace_all_items=request.replace_all_items
        )

        if background_tasks is not None and len(eligible) > settings.async_import_threshold:
            return self._queue(request, eligible, background_tasks)

        result = self.import_items(request, eligible)
        if request.preview_id and result.overall_status == ImportOverallStatus.COMPLETED:
            preview_cache_service.delete_preview(request.preview_id)
        return result

    def _collect_items(self, request: FinalizeImportRequest) -> list[ParsedMenuItem]:
        if request.items_to_import is not None:
            return request.items_to_import
        if request.preview_id:
            return self.workspace.get_preview(request.preview_id).parsed_items
        raise ValidationError(
            "Either items_to_import or preview_id must be provided.",
            code="NO_ITEMS_TO_IMPORT"
        )

    # ===================
    # BACKGROUND JOBS
    # ===================

    def _queue(
        self,
        request: FinalizeImportRequest,
        eligible: list[ParsedMenuItem],
        background_tasks: BackgroundTasks
    ) -> ImportResult:
        payload = request.model_copy(update={"items_to_import": eligible})
        job = self.job_service.create_job(
            request.restaurant_id,
            len(eligible),
            payload.model_dump(mode="json")
        )
        background_tasks.add_task(self.run_job, job.id)

        return ImportResult(
            job_id=job.id,
            job_status=ImportJobStatus.PENDING,
            message=(
                f"Menu import with {len(eligible)} items has been queued for "
                f"processing. Job ID: {job.id}"
            ),
            items_processed=len(eligible)
        )

    def run_job(self, job_id: str) -> None:
        """Background worker body. Runs to completion; there is no cancel."""
        job = self.job_service.get_job(job_id)
        self.job_service.mark_processing(job_id)

        try:
            request = FinalizeImportRequest(**job.request)
            result = self.import_items(request, request.items_to_import or [])
        except Exception as e:
            logger.exception("import_job_crashed", job_id=job_id)
            self.job_service.fail_job(job_id, f"Failed to finalize import: {e}")
            return

        result.job_id = job_id
        self.job_service.complete_job(job_id, result)
        if request.preview_id and result.overall_status == ImportOverallStatus.COMPLETED:
            preview_cache_service.delete_preview(request.preview_id)

    # ===================
    # COMMIT
    # ===================

    def _resolve_menu(self, request: FinalizeImportRequest) -> tuple[MenuResponse, bool]:
        """
        Target menu of the import.

        Returns:
            (menu, existed) where existed is False for a menu created here
        """
        if request.target_menu_id:
            return self.menu_service.get_menu(request.target_menu_id, request.restaurant_id), True

        name = (request.parsed_menu_name or "").strip()
        if not name:
            raise ValidationError(
                "Target menu ID or parsed menu name must be provided.",
                code="MENU_NAME_REQUIRED"
            )

        menu = self.menu_service.find_menu_by_name(request.restaurant_id, name)
        if menu is not None:
            return menu, True
        return self.menu_service.create_menu(request.restaurant_id, name), False

    def import_items(
        self,
        request: FinalizeImportRequest,
        eligible: list[ParsedMenuItem]
    ) -> ImportResult:
        """
        Apply create/update per item and aggregate the outcome.

        Args:
            request: Scope and menu options
            eligible: Items already filtered to keep + create/update
        """
        # Filtered again; job payloads are replayed from storage
        eligible = [item for item in eligible if is_eligible_for_import(item)]
        result = ImportResult(items_processed=len(eligible))

        try:
            menu, existed = self._resolve_menu(request)
        except (MenuNotFoundError, ValidationError) as e:
            logger.warning(
                "finalize_import_rejected",
                restaurant_id=request.restaurant_id,
                target_menu_id=request.target_menu_id,
                error=e.message
            )
            result.overall_status = ImportOverallStatus.FAILED
            result.message = e.message
            return result

        result.menu_id = menu.id
        result.menu_name = menu.name

        if request.replace_all_items and existed:
            self.menu_service.delete_menu_items(menu.id, request.restaurant_id)

        for item in eligible:
            action = effective_import_action(item)
            try:
                outcome = self._import_one(item, action, menu, request.restaurant_id)
            except Exception as e:
                reason = e.message if isinstance(e, AppError) else str(e)
                logger.warning(
                    "import_item_failed",
                    item_id=item.id,
                    import_action=action.value if action else None,
                    error=reason
                )
                result.items_errored += 1
                result.error_details.append(ImportResultItemDetail(
                    id=item.id,
                    name=item.name or "N/A",
                    status=ImportItemOutcome.ERROR,
                    import_action=action,
                    existing_item_id=item.existing_item_id,
                    error_reason=reason
                ))
                continue

            if outcome == ImportItemOutcome.CREATED:
                result.items_created += 1
            elif outcome == ImportItemOutcome.UPDATED:
                result.items_updated += 1
            else:
                result.items_skipped += 1

        succeeded = result.items_created + result.items_updated + result.items_skipped
        result.overall_status = overall_status(succeeded, result.items_errored)
        result.message = (
            f"Import into '{menu.name}' finished: {result.items_created} created, "
            f"{result.items_updated} updated, {result.items_skipped} skipped, "
            f"{result.items_errored} errored."
        )
        if result.error_details:
            result.error_report = generate_error_report(result.error_details)

        logger.info(
            "finalize_import_completed",
            menu_id=menu.id,
            overall_status=result.overall_status.value,
            created=result.items_created,
            updated=result.items_updated,
            skipped=result.items_skipped,
            errored=result.items_errored
        )
        return result

    def _import_one(
        self,
        item: ParsedMenuItem,
        action: Optional[ImportAction],
        menu: MenuResponse,
        restaurant_id: str
    ) -> ImportItemOutcome:
        if action == ImportAction.CREATE:
            self.menu_service.insert_item(prepare_new_item(item, menu.id, restaurant_id))
            return ImportItemOutcome.CREATED

        if action == ImportAction.UPDATE:
            if not item.existing_item_id:
                raise InvalidImportActionError(
                    "Missing existing item ID for update.",
                    details={"item_id": item.id}
                )

            not_in_menu = MenuItemDataError(
                f"Item to update (ID: {item.existing_item_id}) not found in target menu {menu.id}.",
                field="existing_item_id"
            )
            try:
                existing = self.menu_service.get_item(item.existing_item_id, restaurant_id)
            except MenuItemNotFoundError:
                raise not_in_menu
            if existing.get("menu_id") != menu.id:
                raise not_in_menu

            changes = prepare_item_update(item, existing)
            if not changes:
                return ImportItemOutcome.SKIPPED

            self.menu_service.update_item(
                item.existing_item_id,
                restaurant_id,
                changes,
                expected_version=item.existing_item_version
            )
            return ImportItemOutcome.UPDATED

        raise InvalidImportActionError(
            f"Invalid import action '{action.value if action else None}'.",
            details={"item_id": item.id}
        )


# Singleton instance
_menu_import_service: Optional[MenuImportService] = None


def get_menu_import_service() -> MenuImportService:
    """Get or create menu import service instance."""
    global _menu_import_service
    if _menu_import_service is None:
        _menu_import_service = MenuImportService()
    return _menu_import_service
