from pydantic import BaseModel, Field, EmailStr, model_validator
from typing import Optional, List, Literal, Any, Dict
from datetime import datetime
from bson import ObjectId

FILE_TYPES = ("doc", "sheet", "text", "zip", "pdf", "video")
FOLDER_TYPE = "folder"

FileType = Literal["doc", "sheet", "text", "zip", "pdf", "video", "folder"]
BULK_OPERATIONS = ("trash", "star", "unstar", "move", "share")

# Users
class User(BaseModel):
    email: EmailStr
    name: str
    password_hash: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# Files
class File(BaseModel):
    """Stored shape of a file or folder. Only metadata is kept."""

    model_config = {"arbitrary_types_allowed": True}

    name: str = Field(min_length=1)
    type: FileType
    owner: ObjectId
    owner_name: str
    owner_email: str
    size: int = Field(default=0, ge=0)
    location: str
    is_folder: bool = False
    is_starred: bool = False
    shared_with: List[str] = []
    description: str = ""
    content_preview: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def folder_type_matches_flag(self):
        if self.is_folder and self.type != FOLDER_TYPE:
            raise ValueError("folders must have type 'folder'")
        if not self.is_folder and self.type == FOLDER_TYPE:
            raise ValueError("type 'folder' is reserved for folders")
        return self

# Auth
class SignUpRequest(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    password: Optional[str] = None

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class UserSummary(BaseModel):
    id: str
    email: str
    name: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserSummary

# File requests
class FileCreate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    is_folder: bool = False
    location: Optional[str] = None
    size: int = Field(default=0, ge=0)
    description: Optional[str] = ""
    content_preview: Optional[str] = ""

class FileUpdate(BaseModel):
    name: Optional[str] = None
    is_starred: Optional[bool] = None
    location: Optional[str] = None
    description: Optional[str] = None

class ShareRequest(BaseModel):
    emails: Optional[List[Any]] = None

class BulkRequest(BaseModel):
    operation: Optional[str] = None
    file_ids: Optional[List[Any]] = None
    data: Optional[Dict[str, Any]] = None