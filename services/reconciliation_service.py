"""
Per-item reconciliation state machine.

An item moves through:
    new → edited* → (error_client_validation ↔ edited)
        → conflict-checked → import attempted → created/updated/skipped/errored

These functions mutate the item they are given and return it. They do
no I/O; the preview workspace, the conflict resolver and the import
finalizer call them at the points where the state changes.
"""

from datetime import date
from typing import Any, Optional

import structlog

from exceptions import (
    InvalidImportActionError,
    ServingOptionNotFoundError,
    UnknownFieldError,
    ValidationError,
)
from models.menu_upload import (
    FIELD_KINDS,
    ConflictResolution,
    ConflictStatus,
    FieldKind,
    ImportAction,
    ItemStatus,
    MenuItemField,
    ParsedMenuItem,
    UserAction,
    WineServingOption,
)
from services.field_validation_service import validate_field, validate_serving_option

logger = structlog.get_logger(__name__)

_UNSET: Any = object()

SERVING_OPTIONS_FIELD = "wine_serving_options"


# ===================
# DERIVATIONS
# ===================

def derive_default_action(
    conflict_resolution: Optional[ConflictResolution],
    user_action: UserAction
) -> Optional[ImportAction]:
    """
    Default import action implied by a conflict check.

    ignore                               → skip
    no_conflict                          → create
    update_candidate with an existing id → update
    anything else (or not checked yet)   → None, the user has to decide
    """
    if user_action == UserAction.IGNORE:
        return ImportAction.SKIP
    if conflict_resolution is None:
        return None
    if conflict_resolution.status == ConflictStatus.NO_CONFLICT:
        return ImportAction.CREATE
    if (
        conflict_resolution.status == ConflictStatus.UPDATE_CANDIDATE
        and conflict_resolution.existing_item_id
    ):
        return ImportAction.UPDATE
    return None


def has_invalid_field(item: ParsedMenuItem) -> bool:
    return any(not field.is_valid for field in item.fields.values())


def derive_status(item: ParsedMenuItem) -> ItemStatus:
    """
    Status is never set directly.

    error_client_validation holds exactly when some field is invalid.
    """
    if has_invalid_field(item):
        return ItemStatus.ERROR_CLIENT_VALIDATION
    if item.user_action == UserAction.IGNORE:
        return ItemStatus.IGNORED
    if (
        item.conflict_resolution is not None
        and item.conflict_resolution.status == ConflictStatus.ERROR_PROCESSING_CONFLICT
    ):
        return ItemStatus.ERROR
    if item.edited:
        return ItemStatus.EDITED
    return ItemStatus.NEW


def effective_import_action(item: ParsedMenuItem) -> Optional[ImportAction]:
    """Ignored items are always skipped, whatever action is stored."""
    if item.user_action == UserAction.IGNORE:
        return ImportAction.SKIP
    return item.import_action


def is_eligible_for_import(item: ParsedMenuItem) -> bool:
    return effective_import_action(item) in (ImportAction.CREATE, ImportAction.UPDATE)


# ===================
# VALIDATION
# ===================

def _validate_option(option: WineServingOption) -> None:
    size_result, price_result = validate_serving_option(option.size, option.price)
    option.is_valid_size = size_result.is_valid
    option.size_error = size_result.error_message
    option.is_valid_price = price_result.is_valid
    option.price_error = price_result.error_message


def _refresh_serving_options_field(field: MenuItemField, today: Optional[date] = None) -> None:
    shape = validate_field(SERVING_OPTIONS_FIELD, field.value, today)
    if not shape.is_valid:
        field.is_valid = False
        field.error_message = shape.error_message
        return

    for option in field.value or []:
        _validate_option(option)

    if all(option.is_valid for option in field.value or []):
        field.is_valid = True
        field.error_message = None
    else:
        field.is_valid = False
        field.error_message = "One or more serving options are invalid."


def _coerce_serving_options(value: Any) -> Any:
    if not isinstance(value, list):
        return value
    return [
        opt if isinstance(opt, WineServingOption) else WineServingOption.model_validate(opt)
        for opt in value
    ]


def revalidate_item(item: ParsedMenuItem, today: Optional[date] = None) -> ParsedMenuItem:
    """Validate every field of an item and recompute its status."""
    for field_name, field in item.fields.items():
        if field.kind == FieldKind.SERVING_OPTIONS:
            field.value = _coerce_serving_options(field.value)
            _refresh_serving_options_field(field, today)
            continue
        result = validate_field(field_name, field.value, today)
        field.is_valid = result.is_valid
        field.error_message = result.error_message
    item.status = derive_status(item)
    return item


# ===================
# TRANSITIONS
# ===================

def apply_field_edit(
    item: ParsedMenuItem,
    field_name: str,
    value: Any,
    today: Optional[date] = None
) -> ParsedMenuItem:
    """
    Apply an inline edit and recompute the item's status.

    Invalid values are stored too; the field carries the error.

    Raises:
        UnknownFieldError: If field_name is not a menu item field
    """
    kind = FIELD_KINDS.get(field_name)
    if kind is None:
        raise UnknownFieldError(field_name, list(FIELD_KINDS))

    field = item.fields.get(field_name)
    if field is None:
        field = MenuItemField(kind=kind)
        item.fields[field_name] = field

    if kind == FieldKind.SERVING_OPTIONS:
        field.value = _coerce_serving_options(value)
        _refresh_serving_options_field(field, today)
    else:
        result = validate_field(field_name, value, today)
        field.value = value
        field.is_valid = result.is_valid
        field.error_message = result.error_message

    item.edited = True
    item.status = derive_status(item)

    logger.debug(
        "field_edited",
        item_id=item.id,
        field=field_name,
        is_valid=field.is_valid,
        status=item.status.value
    )
    return item


def set_user_action(item: ParsedMenuItem, action: UserAction) -> ParsedMenuItem:
    """
    Toggle keep/ignore.

    Ignoring leaves the stored import action alone so switching back to
    keep restores it. Keeping re-derives the action from the last conflict
    check unless the user picked one explicitly.
    """
    item.user_action = action

    if action == UserAction.KEEP and not item.import_action_is_user_choice:
        _apply_derived_action(item)

    item.status = derive_status(item)
    return item


def set_import_action(
    item: ParsedMenuItem,
    action: ImportAction,
    existing_item_id: Optional[str] = None
) -> ParsedMenuItem:
    """
    Record the user's explicit import decision.

    Raises:
        InvalidImportActionError: If update has no target, or the target is
            not one of the candidates found by the conflict check
    """
    resolution = item.conflict_resolution

    if action == ImportAction.UPDATE:
        target = (
            existing_item_id
            or item.existing_item_id
            or (resolution.existing_item_id if resolution else None)
        )
        if not target:
            raise InvalidImportActionError(
                "Choose the existing item to update.",
                details={"item_id": item.id}
            )
        if (
            resolution is not None
            and resolution.status == ConflictStatus.MULTIPLE_CANDIDATES
            and resolution.candidate_item_ids
            and target not in resolution.candidate_item_ids
        ):
            raise InvalidImportActionError(
                "Selected item is not one of the matching candidates.",
                details={
                    "item_id": item.id,
                    "existing_item_id": target,
                    "candidates": resolution.candidate_item_ids,
                }
            )
        item.existing_item_id = target
        item.existing_item_version = resolution.item_versions.get(target) if resolution else None

    item.import_action = action
    item.import_action_is_user_choice = True
    item.status = derive_status(item)
    return item


def apply_conflict_resolution(
    item: ParsedMenuItem,
    resolution: ConflictResolution
) -> ParsedMenuItem:
    """
    Store a conflict check result on the item.

    The import action and target are only filled in when the user has not
    chosen them explicitly.
    """
    item.conflict_resolution = resolution

    if not item.import_action_is_user_choice:
        _apply_derived_action(item)
    elif item.existing_item_id and item.existing_item_id in resolution.item_versions:
        # Fresh read of the item the user chose to overwrite
        item.existing_item_version = resolution.item_versions[item.existing_item_id]

    item.status = derive_status(item)
    return item


def _apply_derived_action(item: ParsedMenuItem) -> None:
    if item.user_action != UserAction.KEEP:
        return
    resolution = item.conflict_resolution
    # Nothing learned about the item; keep what was decided before the ignore
    if resolution is None or resolution.status == ConflictStatus.SKIPPED_BY_USER:
        return
    item.import_action = derive_default_action(resolution, item.user_action)
    if item.import_action == ImportAction.UPDATE:
        item.existing_item_id = resolution.existing_item_id
        item.existing_item_version = resolution.item_versions.get(resolution.existing_item_id)
    else:
        item.existing_item_id = None
        item.existing_item_version = None


# ===================
# SERVING OPTIONS
# ===================

def _serving_options_field(item: ParsedMenuItem) -> MenuItemField:
    if not item.is_wine:
        raise ValidationError(
            "Serving options are only available for wine items.",
            code="SERVING_OPTIONS_NOT_ALLOWED",
            details={"item_id": item.id, "item_type": item.item_type}
        )
    field = item.fields.get(SERVING_OPTIONS_FIELD)
    if field is None:
        field = MenuItemField(kind=FieldKind.SERVING_OPTIONS, value=[])
        item.fields[SERVING_OPTIONS_FIELD] = field
    elif not isinstance(field.value, list):
        field.value = []
    return field


def add_serving_option(
    item: ParsedMenuItem,
    size: str = "",
    price: Any = None
) -> WineServingOption:
    """Append a size/price row to a wine item."""
    field = _serving_options_field(item)
    option = WineServingOption(size=size, price=price)
    field.value.append(option)
    _refresh_serving_options_field(field)
    item.edited = True
    item.status = derive_status(item)
    return option


def update_serving_option(
    item: ParsedMenuItem,
    option_id: str,
    size: Any = _UNSET,
    price: Any = _UNSET
) -> WineServingOption:
    """Change one row; only the given attributes are touched."""
    field = _serving_options_field(item)
    option = next((opt for opt in field.value if opt.id == option_id), None)
    if option is None:
        raise ServingOptionNotFoundError(option_id)

    if size is not _UNSET:
        option.size = size
    if price is not _UNSET:
        option.price = price

    _refresh_serving_options_field(field)
    item.edited = True
    item.status = derive_status(item)
    return option


def remove_serving_option(item: ParsedMenuItem, option_id: str) -> ParsedMenuItem:
    """Drop one row; sibling rows keep their own validity."""
    field = _serving_options_field(item)
    remaining = [opt for opt in field.value if opt.id != option_id]
    if len(remaining) == len(field.value):
        raise ServingOptionNotFoundError(option_id)

    field.value = remaining
    _refresh_serving_options_field(field)
    item.edited = True
    item.status = derive_status(item)
    return item
