"""Scheduling rules router - FastAPI endpoints for rule management"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from .rule_parser import parse_rule_text
from .schemas import (
    RuleTextRequest,
    SchedulingRuleCreate,
    SchedulingRuleResponse,
    SchedulingRuleUpdate,
)
from .service import SchedulingRuleService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/scheduling-rules", tags=["Scheduling Rules"])


def get_rule_service(db: Session = Depends(get_db)) -> SchedulingRuleService:
    """Dependency injection for SchedulingRuleService"""
    return SchedulingRuleService(db)


@router.get("")
async def list_rules(
    current_user: User = Depends(get_current_user),
    service: SchedulingRuleService = Depends(get_rule_service),
):
    """List the current user's rules in evaluation order"""
    rules = service.get_rules(current_user)
    return {"rules": [SchedulingRuleResponse.model_validate(r) for r in rules]}


@router.post("", response_model=SchedulingRuleResponse)
async def create_rule(
    data: SchedulingRuleCreate,
    current_user: User = Depends(get_current_user),
    service: SchedulingRuleService = Depends(get_rule_service),
):
    return service.create_rule(data, current_user)


@router.post("/from-text")
async def create_rule_from_text(
    data: RuleTextRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingRuleService = Depends(get_rule_service),
):
    """Create a rule from a plain-English description"""
    rule = service.create_rule_from_text(data.rule_text, current_user)
    return {"rule": SchedulingRuleResponse.model_validate(rule)}


@router.post("/parse")
async def preview_rule(data: RuleTextRequest, current_user: User = Depends(get_current_user)):
    """Show how a description would be parsed without saving it"""
    parsed = parse_rule_text(data.rule_text)
    return {"parsed": parsed.model_dump() if parsed else None}


@router.patch("/{rule_id}", response_model=SchedulingRuleResponse)
async def update_rule(
    rule_id: int,
    data: SchedulingRuleUpdate,
    current_user: User = Depends(get_current_user),
    service: SchedulingRuleService = Depends(get_rule_service),
):
    return service.update_rule(rule_id, data, current_user)


@router.patch("/{rule_id}/toggle")
async def toggle_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingRuleService = Depends(get_rule_service),
):
    """Toggle a rule active/inactive"""
    rule = service.toggle_rule(rule_id, current_user)
    return {"rule": SchedulingRuleResponse.model_validate(rule)}


@router.delete("/{rule_id}")
async def delete_rule(
    rule_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingRuleService = Depends(get_rule_service),
):
    return service.delete_rule(rule_id, current_user)
