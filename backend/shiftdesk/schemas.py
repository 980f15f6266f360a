"""Typed request structs for the scheduling core.

Everything entering a service is validated here first; services never see
raw dicts from a request body.
"""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, Field


class RoleRequirement(BaseModel):
    shift_role_id: int | None = Field(default=None, gt=0)
    role: str | None = Field(default=None, max_length=80)
    required: int | None = Field(default=None, ge=1)


class ShiftTemplateIn(BaseModel):
    id: int | None = Field(default=None, gt=0)
    shift_type_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=160)
    default_start_time: dt.time | None = None
    default_end_time: dt.time | None = None
    default_capacity: int | None = Field(default=None, ge=0)
    requires_leader: bool = False
    default_roles: list[RoleRequirement] | None = None
    default_meta: dict[str, Any] | None = None
    repeat_on: list[int] | None = None
    manager_covers_team: bool = False


class ShiftInstanceCreateIn(BaseModel):
    schedule_week_id: int = Field(..., gt=0)
    shift_type_id: int = Field(..., gt=0)
    shift_template_id: int | None = Field(default=None, gt=0)
    date: dt.date
    time_start: dt.time
    time_end: dt.time | None = None
    capacity: int | None = Field(default=None, ge=0)
    required_roles: list[RoleRequirement] | None = None
    meta: dict[str, Any] | None = None


class ShiftInstanceUpdateIn(BaseModel):
    date: dt.date | None = None
    time_start: dt.time | None = None
    time_end: dt.time | None = None
    capacity: int | None = Field(default=None, ge=0)
    required_roles: list[RoleRequirement] | None = None
    meta: dict[str, Any] | None = None


class AssignmentIn(BaseModel):
    shift_instance_id: int = Field(..., gt=0)
    user_id: int = Field(..., gt=0)
    role_in_shift: str = Field(..., min_length=1, max_length=80)
    shift_role_id: int | None = Field(default=None, gt=0)
    override_reason: str | None = Field(default=None, max_length=500)


class AvailabilityIn(BaseModel):
    day: dt.date
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    shift_type_id: int | None = Field(default=None, gt=0)
    status: Literal["available", "unavailable"]
    notes: str | None = Field(default=None, max_length=1000)


class GenerateWeekIn(BaseModel):
    week: str | None = Field(default=None, description="YYYY-Www; defaults to next week")
    auto_spawn: bool = False


class SwapCreateIn(BaseModel):
    from_assignment_id: int = Field(..., gt=0)
    to_assignment_id: int = Field(..., gt=0)
    partner_id: int = Field(..., gt=0)


class SwapPartnerResponseIn(BaseModel):
    accept: bool


class SwapDecisionIn(BaseModel):
    approve: bool
    reason: str | None = Field(default=None, max_length=500)


class ShiftRoleIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)


class UserShiftRolesIn(BaseModel):
    role_ids: list[int] = Field(default_factory=list)
