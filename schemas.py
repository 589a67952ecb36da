"""
Database Schemas for Study Share

Each Pydantic model corresponds to a MongoDB collection. The collection name is the lowercase
of the class name (e.g., User -> "user"). Documents are built through these models and
inserted with ``model_dump(exclude_none=True)`` so optional fields that were never set
(notably ``teacherCode`` on unshared content) are absent rather than null.
"""
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["student", "staff"]
QuestionStatus = Literal["open", "resolved"]
FileType = Literal["pdf", "image", "drawing", "document", "presentation"]


class User(BaseModel):
    registrationNumber: str = Field(..., description="Login handle, unique")
    password_hash: str = Field(..., description="Bcrypt password hash")
    role: Role = Field(..., description="User role")
    year: Optional[str] = None
    semester: Optional[str] = None
    course: Optional[str] = Field(None, description="Student course")
    subject: Optional[str] = Field(None, description="Staff subject")
    teacherCode: Optional[str] = Field(
        None, description="Staff: own sharing code. Student: first connected code"
    )
    teacherCodes: List[str] = Field(default_factory=list, description="Codes a student is connected to")


class UploaderInfo(BaseModel):
    registrationNumber: str
    role: Role
    subject: Optional[str] = None
    year: Optional[str] = None
    semester: Optional[str] = None
    course: Optional[str] = None


class Note(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str
    content: str
    tags: List[str] = Field(default_factory=list)
    authorId: Any = Field(..., description="Owner user ObjectId")
    authorName: str
    isShared: bool = False
    teacherCode: Optional[str] = None


class File(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    fileName: str
    originalName: str
    fileType: FileType
    fileSize: int
    fileData: str = Field(..., description="base64 data URL")
    mimeType: str
    uploadedBy: Any = Field(..., description="Owner user ObjectId")
    uploaderInfo: UploaderInfo
    annotations: List[dict] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    isShared: bool = False
    teacherCode: Optional[str] = None


class Whiteboard(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str = Field(..., max_length=150)
    imageData: str
    authorId: Any = Field(..., description="Owner user ObjectId")
    authorName: str
    isShared: bool = False
    teacherCode: Optional[str] = None


class Answer(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    content: str
    author: Any


class Question(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str
    content: str
    author: Any
    tags: List[str] = Field(default_factory=list)
    status: QuestionStatus = "open"
    answers: List[dict] = Field(default_factory=list)
    assignedTeacher: Any = None
    assignedTeacherCode: Optional[str] = None
