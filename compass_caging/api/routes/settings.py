"""Mapping rule, assignment rule and export template endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from ...store import CagingStore
from ..deps import CurrentUser, as_dict, as_dicts, get_current_user, get_store, require_admin
from ..schemas import (
    AssignmentRuleCreate,
    AssignmentRuleUpdate,
    ExportTemplateCreate,
    ExportTemplateUpdate,
    MappingRuleCreate,
    MappingRuleUpdate,
)

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("/mapping-rules")
def list_mapping_rules(
    source: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_mapping_rules(source))


@router.post("/mapping-rules", status_code=status.HTTP_201_CREATED)
def create_mapping_rule(
    payload: MappingRuleCreate,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    return {"success": True, "id": store.add_mapping_rule(**payload.model_dump())}


@router.patch("/mapping-rules/{rule_id}")
def update_mapping_rule(
    rule_id: int,
    payload: MappingRuleUpdate,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(store.update_mapping_rule(rule_id, **payload.model_dump(exclude_unset=True)))


@router.delete("/mapping-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_mapping_rule(
    rule_id: int,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> Response:
    store.delete_mapping_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/assignment-rules")
def list_assignment_rules(
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return as_dicts(store.list_assignment_rules())


@router.post("/assignment-rules", status_code=status.HTTP_201_CREATED)
def create_assignment_rule(
    payload: AssignmentRuleCreate,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    return {"success": True, "id": store.add_assignment_rule(**payload.model_dump())}


@router.patch("/assignment-rules/{rule_id}")
def update_assignment_rule(
    rule_id: int,
    payload: AssignmentRuleUpdate,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    return as_dict(store.update_assignment_rule(rule_id, **payload.model_dump(exclude_unset=True)))


@router.delete("/assignment-rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_assignment_rule(
    rule_id: int,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> Response:
    store.delete_assignment_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/export-templates")
def list_export_templates(
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> list[dict]:
    return store.list_export_templates()


@router.post("/export-templates", status_code=status.HTTP_201_CREATED)
def create_export_template(
    payload: ExportTemplateCreate,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    template_id = store.add_export_template(payload.name, payload.mappings)
    return store.get_export_template(template_id)


@router.get("/export-templates/{template_id}")
def get_export_template(
    template_id: int,
    user: CurrentUser = Depends(get_current_user),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.get_export_template(template_id)


@router.patch("/export-templates/{template_id}")
def update_export_template(
    template_id: int,
    payload: ExportTemplateUpdate,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> dict:
    return store.update_export_template(template_id, payload.name, payload.mappings)


@router.delete("/export-templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_export_template(
    template_id: int,
    user: CurrentUser = Depends(require_admin),
    store: CagingStore = Depends(get_store),
) -> Response:
    store.delete_export_template(template_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
