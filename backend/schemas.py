"""
backend/schemas.py

Pydantic request/response schemas for the HTTP API.

Request schemas only shape and trim input; domain rules (non-empty names,
collaborator existence, field allow-lists) live in the service modules so the
same checks apply outside HTTP. Response schemas never carry password hashes.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, validator

from backend.models import BoardImage, LeaveOutcome, Note, Priority, Project, Task, User, Visibility


# ========================================================================
# AUTH / USERS
# ========================================================================

class RegisterRequest(BaseModel):
    username: str = Field(..., max_length=50, description="Unique handle")
    email: str = Field(..., max_length=254)
    full_name: str = Field("", max_length=120)
    password: str = Field(..., min_length=1)
    confirm_password: Optional[str] = None

    @validator("username", "email", "full_name", pre=True)
    def trim_fields(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

    @validator("confirm_password")
    def passwords_match(cls, v, values):
        """confirm_password, when sent, must equal password."""
        if v is not None and "password" in values and v != values["password"]:
            raise ValueError("Passwords do not match")
        return v


class LoginRequest(BaseModel):
    identifier: str = Field(..., description="Username or email")
    password: str


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    full_name: str = ""
    birth_month: Optional[str] = None
    birth_day: Optional[str] = None
    birth_year: Optional[str] = None
    gender: Optional[str] = None
    profile_picture: str = ""
    wallpaper: Optional[str] = None
    side_menu_color: Optional[str] = None
    theme_mode: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(**user.dict(exclude={"created_at"}))


class ProfileUpdateRequest(BaseModel):
    """
    Partial profile update; only keys the client sends are changed.
    Picture and wallpaper are URLs or storage keys of already uploaded files.
    """
    email: Optional[str] = Field(None, max_length=254)
    full_name: Optional[str] = Field(None, max_length=120)
    birth_month: Optional[str] = Field(None, max_length=20)
    birth_day: Optional[str] = Field(None, max_length=2)
    birth_year: Optional[str] = Field(None, max_length=4)
    gender: Optional[str] = Field(None, max_length=40)
    profile_picture: Optional[str] = Field(None, max_length=2048)
    wallpaper: Optional[str] = Field(None, max_length=2048)
    side_menu_color: Optional[str] = Field(None, max_length=64)
    theme_mode: Optional[str] = Field(None, max_length=20)

    class Config:
        extra = "allow"

    def fields(self) -> Dict[str, Any]:
        return self.dict(exclude_unset=True)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# ========================================================================
# PROJECTS
# ========================================================================

class ProjectCreateRequest(BaseModel):
    """
    name is trimmed here; emptiness is rejected by projects.create_project.
    collaborators must be a JSON array of user ids.
    """
    name: str = Field("", max_length=200)
    icon: Optional[str] = Field(None, max_length=16)
    visibility: Optional[Visibility] = None
    subject: Optional[str] = Field(None, max_length=200)
    deadline: Optional[str] = Field(None, description="ISO date or datetime")
    priority: Optional[Priority] = None
    links: Optional[List[str]] = None
    collaborators: List[int] = Field(default_factory=list)

    @validator("name", pre=True)
    def trim_name(cls, v):
        """Trim whitespace from name."""
        if isinstance(v, str):
            return v.strip()
        return v

    def metadata(self) -> Dict[str, Any]:
        """Metadata fields the client actually sent."""
        data = self.dict(exclude_unset=True, exclude={"name", "collaborators"})
        return {k: (v.value if isinstance(v, (Visibility, Priority)) else v) for k, v in data.items() if v is not None}


class ProjectUpdateRequest(BaseModel):
    """
    Partial update. Unknown keys are passed through so the service can name
    them in its InvalidInput reason (e.g. "collaborators").
    """
    name: Optional[str] = Field(None, max_length=200)
    icon: Optional[str] = Field(None, max_length=16)
    visibility: Optional[Visibility] = None
    subject: Optional[str] = Field(None, max_length=200)
    deadline: Optional[str] = None
    priority: Optional[Priority] = None
    links: Optional[List[str]] = None

    class Config:
        extra = "allow"

    def fields(self) -> Dict[str, Any]:
        data = self.dict(exclude_unset=True)
        return {k: (v.value if isinstance(v, (Visibility, Priority)) else v) for k, v in data.items()}


class CollaboratorsRequest(BaseModel):
    collaborators: List[int]


class MemberSummary(BaseModel):
    id: int
    username: Optional[str] = None
    full_name: Optional[str] = None
    role: str


class ProjectResponse(BaseModel):
    id: int
    name: str
    slug: str
    icon: str
    visibility: Visibility
    subject: Optional[str] = None
    deadline: Optional[str] = None
    priority: Priority
    links: List[str] = Field(default_factory=list)
    owner: Optional[int] = None
    collaborators: List[int] = Field(default_factory=list)
    members: List[MemberSummary] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_project(cls, project: Project, members: Optional[List[Dict[str, Any]]] = None) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            slug=project.slug,
            icon=project.icon,
            visibility=project.visibility,
            subject=project.subject,
            deadline=project.deadline,
            priority=project.priority,
            links=project.links,
            owner=project.owner_id,
            collaborators=project.collaborator_ids,
            members=[MemberSummary(**m) for m in (members or [])],
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class LeaveResponse(BaseModel):
    outcome: LeaveOutcome
    project: Optional[ProjectResponse] = None
    new_owner_id: Optional[int] = None


# ========================================================================
# TASKS
# ========================================================================

class TaskCreateRequest(BaseModel):
    project_id: int
    name: str = ""
    priority: Optional[Priority] = None
    due: Optional[str] = None

    @validator("name", pre=True)
    def trim_name(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


class TaskUpdateRequest(BaseModel):
    name: Optional[str] = None
    completed: Optional[bool] = None
    priority: Optional[Priority] = None
    due: Optional[str] = None
    order: Optional[int] = None

    class Config:
        extra = "allow"

    def fields(self) -> Dict[str, Any]:
        data = self.dict(exclude_unset=True)
        return {k: (v.value if isinstance(v, Priority) else v) for k, v in data.items()}


class TaskResponse(BaseModel):
    id: int
    project_id: int
    creator_id: int
    name: str
    completed: bool
    priority: Priority
    due: Optional[str] = None
    order: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(**task.dict())


# ========================================================================
# NOTES / BOARDS
# ========================================================================

class NoteSaveRequest(BaseModel):
    project_id: int
    content: str = ""


class NoteResponse(BaseModel):
    id: int
    project_id: int
    content: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        return cls(**note.dict())


class BoardImageCreateRequest(BaseModel):
    url: str = Field(..., max_length=2048)
    public_id: str = Field(..., max_length=512, description="Object-storage key")


class BoardImageResponse(BaseModel):
    id: int
    project_id: int
    url: str
    public_id: str
    uploaded_by: int
    created_at: Optional[str] = None

    @classmethod
    def from_image(cls, image: BoardImage) -> "BoardImageResponse":
        return cls(**image.dict())


class BoardResponse(BaseModel):
    project_id: int
    images: List[BoardImageResponse] = Field(default_factory=list)
