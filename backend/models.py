from __future__ import annotations

import json
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


# Enums
class Visibility(str, Enum):
    private = "private"
    public = "public"


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class MemberRole(str, Enum):
    owner = "owner"
    collaborator = "collaborator"


class LeaveOutcome(str, Enum):
    left = "left"                # collaborator departed, project persists
    transferred = "transferred"  # owner departed, first collaborator promoted
    deleted = "deleted"          # last member departed, project removed


# Appearance defaults for new accounts (also what a cleared setting falls back to)
DEFAULT_PROFILE_PICTURE = ""
DEFAULT_WALLPAPER = "/Images/backgroundImage.jpeg"
DEFAULT_SIDE_MENU_COLOR = "rgba(255, 255, 255, 1)"
DEFAULT_THEME_MODE = "light"


# Records
class User(BaseModel):
    id: int
    username: str
    email: str
    full_name: str = ""
    birth_month: Optional[str] = None
    birth_day: Optional[str] = None
    birth_year: Optional[str] = None
    gender: Optional[str] = None
    profile_picture: str = DEFAULT_PROFILE_PICTURE
    wallpaper: str = DEFAULT_WALLPAPER
    side_menu_color: str = DEFAULT_SIDE_MENU_COLOR
    theme_mode: str = DEFAULT_THEME_MODE
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            full_name=row["full_name"] or "",
            birth_month=row["birth_month"],
            birth_day=row["birth_day"],
            birth_year=row["birth_year"],
            gender=row["gender"],
            profile_picture=row["profile_picture"],
            wallpaper=row["wallpaper"],
            side_menu_color=row["side_menu_color"],
            theme_mode=row["theme_mode"],
            created_at=row["created_at"],
        )


class Membership(BaseModel):
    user_id: int
    role: MemberRole
    position: int = 0


class Project(BaseModel):
    """
    A project plus its membership set.

    Owner and collaborators live in one `members` list tagged by role;
    collaborators keep their stored order (ascending position).
    """
    id: int
    name: str
    slug: str
    icon: str = "🚀"
    visibility: Visibility = Visibility.private
    subject: Optional[str] = None
    deadline: Optional[str] = None
    priority: Priority = Priority.medium
    links: List[str] = Field(default_factory=list)
    members: List[Membership] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row, members: List[Membership]) -> "Project":
        return cls(
            id=row["id"],
            name=row["name"],
            slug=row["slug"],
            icon=row["icon"],
            visibility=row["visibility"],
            subject=row["subject"],
            deadline=row["deadline"],
            priority=row["priority"],
            links=json.loads(row["links_json"] or "[]"),
            members=members,
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @property
    def owner_id(self) -> Optional[int]:
        for m in self.members:
            if m.role == MemberRole.owner:
                return m.user_id
        return None

    @property
    def collaborator_ids(self) -> List[int]:
        collaborators = [m for m in self.members if m.role == MemberRole.collaborator]
        return [m.user_id for m in sorted(collaborators, key=lambda m: m.position)]

    def role_of(self, user_id: Optional[int]) -> Optional[MemberRole]:
        for m in self.members:
            if m.user_id == user_id:
                return m.role
        return None

    def is_member(self, user_id: Optional[int]) -> bool:
        return self.role_of(user_id) is not None


class Task(BaseModel):
    id: int
    project_id: int
    creator_id: int
    name: str
    completed: bool = False
    priority: Priority = Priority.medium
    due: Optional[str] = None
    order: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Task":
        return cls(
            id=row["id"],
            project_id=row["project_id"],
            creator_id=row["creator_id"],
            name=row["name"],
            completed=bool(row["completed"]),
            priority=row["priority"],
            due=row["due"],
            order=row["sort_order"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class Note(BaseModel):
    id: int
    project_id: int
    content: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class BoardImage(BaseModel):
    id: int
    project_id: int
    url: str
    public_id: str
    uploaded_by: int
    created_at: Optional[str] = None
