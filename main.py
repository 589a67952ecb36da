import logging
import re
from typing import Optional, List, Literal

from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database

import config
import content
import forum
from accounts import authenticate, register_user
from content import FILE_OWNER, NOTE_OWNER, WHITEBOARD_OWNER
from database import FILES, NOTES, WHITEBOARDS, connect, create_document, get_db
from errors import ForbiddenError, NotFoundError, install_error_handlers
from linking import connect_student
from recovery import RecoveryLog, capture_request, get_recovery_log
from registry import find_staff
from security import create_token, get_current_user, password_problem, public_user, require_role
from visibility import (
    delete_item,
    get_owned,
    get_shared,
    list_shared_by,
    list_visible,
    sharing_changes,
    update_item,
)

logger = logging.getLogger("study_share")

# ----------------------
# Request models
# ----------------------
Role = Literal["student", "staff"]


class RegisterRequest(BaseModel):
    registrationNumber: str = Field(..., min_length=1)
    password: str
    role: Role
    year: Optional[str] = None
    semester: Optional[str] = None
    course: Optional[str] = None
    subject: Optional[str] = None
    teacherCode: Optional[str] = None

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        problem = password_problem(v)
        if problem:
            raise ValueError(problem)
        return v


class LoginRequest(BaseModel):
    registrationNumber: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ConnectTeacherRequest(BaseModel):
    teacherCode: Optional[str] = None
    staffId: Optional[str] = None


class ConnectStaffRequest(BaseModel):
    staffId: Optional[str] = None


class NoteWrite(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    tags: Optional[List[str]] = None
    isShared: Optional[bool] = None
    # older clients send ``shared``
    shared: Optional[bool] = None

    def sharing(self) -> Optional[bool]:
        return self.isShared if self.isShared is not None else self.shared


class FileUpload(BaseModel):
    filename: str = Field(..., min_length=1)
    fileData: str = Field(..., min_length=1)
    isShared: bool = False


class FileUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    tags: Optional[List[str]] = None
    annotations: Optional[List[dict]] = None
    isShared: Optional[bool] = None


class WhiteboardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=150)
    imageData: str = Field(..., min_length=1)
    isShared: bool = False


class WhiteboardUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=150)
    imageData: Optional[str] = Field(None, min_length=1)
    isShared: Optional[bool] = None


class QuestionCreate(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    tags: Optional[List[str]] = None
    teacherCode: Optional[str] = None


class AnswerCreate(BaseModel):
    content: str = Field(..., min_length=1)


class StatusUpdate(BaseModel):
    status: Optional[str] = None


def _staff_or_404(db: Database, staff_id: str) -> dict:
    staff = find_staff(db, staff_id)
    if not staff:
        raise NotFoundError("Staff not found for provided ID", code="STAFF_NOT_FOUND")
    return staff


def _require_student(user: dict, what: str):
    require_role(user, ["student"], f"Only students can save shared {what}")


def create_app(database: Optional[Database] = None, recovery_dir: Optional[str] = None, recovery_enabled: Optional[bool] = None) -> FastAPI:
    app = FastAPI(title="Study Share API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    app.state.db = database
    app.state.client = None
    app.state.recovery = RecoveryLog(
        recovery_dir or config.RECOVERY_DIR,
        config.RECOVERY_ENABLED if recovery_enabled is None else recovery_enabled,
    )

    @app.on_event("startup")
    def open_database():
        if app.state.db is not None:
            return
        app.state.client, app.state.db = connect()

    @app.on_event("shutdown")
    def close_database():
        if app.state.client is not None:
            app.state.client.close()
            app.state.client = None

    recorded = [Depends(capture_request)]

    # ----------------------
    # Auth endpoints
    # ----------------------
    @app.post("/auth/register", status_code=201)
    def register(payload: RegisterRequest, db: Database = Depends(get_db)):
        user = register_user(
            db,
            registration_number=payload.registrationNumber,
            password=payload.password,
            role=payload.role,
            year=payload.year,
            semester=payload.semester,
            course=payload.course,
            subject=payload.subject,
            teacher_code=payload.teacherCode,
        )
        return {"message": "User registered successfully", "token": create_token(user), "user": public_user(user)}

    @app.post("/auth/login")
    def login(payload: LoginRequest, db: Database = Depends(get_db)):
        user = authenticate(db, payload.registrationNumber, payload.password)
        return {"message": "Login successful", "token": create_token(user), "user": public_user(user)}

    @app.get("/auth/me")
    def me(current=Depends(get_current_user)):
        return {"user": public_user(current)}

    @app.post("/auth/connect-teacher", dependencies=recorded)
    def connect_teacher(body: ConnectTeacherRequest, current=Depends(get_current_user), db: Database = Depends(get_db)):
        return connect_student(db, current, teacher_code=body.teacherCode, staff_id=body.staffId)

    @app.post("/auth/connect-staff", dependencies=recorded)
    def connect_staff(body: ConnectStaffRequest, current=Depends(get_current_user), db: Database = Depends(get_db)):
        return connect_student(db, current, staff_id=body.staffId)

    # ----------------------
    # Notes
    # ----------------------
    @app.get("/notes")
    def list_notes(current=Depends(get_current_user), db: Database = Depends(get_db)):
        return [content.to_client_note(n) for n in list_visible(db, NOTES, current, NOTE_OWNER)]

    @app.get("/notes/my")
    def my_notes(current=Depends(get_current_user), db: Database = Depends(get_db)):
        return list_notes(current, db)

    @app.get("/notes/search")
    def search_notes(q: Optional[str] = None, tags: Optional[str] = None, current=Depends(get_current_user), db: Database = Depends(get_db)):
        criteria = []
        if q:
            pattern = {"$regex": re.escape(q), "$options": "i"}
            criteria.append({"$or": [{"title": pattern}, {"content": pattern}]})
        if tags:
            wanted = [t.strip() for t in tags.split(",") if t.strip()]
            if wanted:
                criteria.append({"tags": {"$in": wanted}})
        extra = {"$and": criteria} if criteria else None
        return [content.to_client_note(n) for n in list_visible(db, NOTES, current, NOTE_OWNER, extra)]

    @app.get("/notes/search/{staff_id}")
    def notes_by_staff(staff_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
        staff = _staff_or_404(db, staff_id)
        notes = list_shared_by(db, NOTES, staff, NOTE_OWNER)
        pdfs = list_shared_by(db, FILES, staff, FILE_OWNER)
        boards = list_shared_by(db, WHITEBOARDS, staff, WHITEBOARD_OWNER)
        return {
            "teacherInfo": content.teacher_info(
                staff, totalNotes=len(notes), totalPdfs=len(pdfs), totalWhiteboards=len(boards)
            ),
            "notes": [content.to_client_note(n) for n in notes],
            "pdfs": [content.to_client_file(f, staff.get("subject")) for f in pdfs],
            "whiteboards": [content.to_client_whiteboard(w, staff.get("subject")) for w in boards],
        }

    @app.post("/notes", status_code=201, dependencies=recorded)
    def create_note(body: NoteWrite, current=Depends(get_current_user), db: Database = Depends(get_db)):
        doc = content.new_note(current, body.title, body.content, body.tags, body.sharing())
        return content.to_client_note(create_document(db, NOTES, doc))

    @app.put("/notes/{note_id}", dependencies=recorded)
    def update_note(note_id: str, body: NoteWrite, current=Depends(get_current_user), db: Database = Depends(get_db)):
        note = get_owned(db, NOTES, note_id, current, NOTE_OWNER, "Note")
        set_fields, unset_fields = sharing_changes(current, body.sharing())
        set_fields.update(title=body.title, content=body.content, tags=body.tags or [])
        return content.to_client_note(update_item(db, NOTES, note, set_fields, unset_fields))

    @app.delete("/notes/{note_id}")
    def delete_note(note_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
        note = get_owned(db, NOTES, note_id, current, NOTE_OWNER, "Note", action="delete")
        delete_item(db, NOTES, note)
        return {"message": "Note deleted successfully"}

    @app.post("/notes/save/{note_id}", status_code=201)
    def save_note(note_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
        _require_student(current, "notes")
        source = get_shared(db, NOTES, note_id, "Note")
        saved = create_document(db, NOTES, content.clone_note(source, current))
        logger.info("Student %s saved note %s as %s", current["_id"], source["_id"], saved["_id"])
        return content.to_client_note(saved)

    # ----------------------
    # Files
    # ----------------------
    @app.get("/files")
    def list_files(current=Depends(get_current_user), db: Database = Depends(get_db)):
        return [content.to_client_file(f) for f in list_visible(db, FILES, current, FILE_OWNER)]

    @app.post("/files/upload", status_code=201, dependencies=recorded)
    def upload_file(body: FileUpload, current=Depends(get_current_user), db: Database = Depends(get_db)):
        doc = content.new_file(current, body.filename, body.fileData, body.isShared)
        return content.to_client_file(create_document(db, FILES, doc), current.get("subject"))

    @app.put("/files/{file_id}", dependencies=recorded)
    def update_file(file_id: str, body: FileUpdate, current=Depends(get_current_user), db: Database = Depends(get_db)):
        doc = get_owned(db, FILES, file_id, current, FILE_OWNER, "File")
        set_fields, unset_fields = sharing_changes(current, body.isShared)
        if body.title is not None:
            set_fields["fileName"] = body.title
        if body.tags is not None:
            set_fields["tags"] = body.tags
        if body.annotations is not None:
            set_fields["annotations"] = body.annotations
        return content.to_client_file(update_item(db, FILES, doc, set_fields, unset_fields), current.get("subject"))

    @app.delete("/files/{file_id}")
    def delete_file(file_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
        doc = get_owned(db, FILES, file_id, current, FILE_OWNER, "File", action="delete")
        delete_item(db, FILES, doc)
        return {"message": "File deleted successfully"}

    @app.post("/files/save/{file_id}", status_code=201)
    def save_file(file_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
        _require_student(current, "files")
        source = get_shared(db, FILES, file_id, "File")
        saved = create_document(db, FILES, content.clone_file(source, current))
        logger.info("Student %s saved file %s as %s", current["_id"], source["_id"], saved["_id"])
        return content.to_client_file(saved, current.get("subject"))

    @app.get("/files/search/{staff_id}")
    def files_by_staff(staff_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
        staff = _staff_or_404(db, staff_id)
        files = list_shared_by(db, FILES, staff, FILE_OWNER)
        return {
            "teacherInfo": content.teacher_info(staff, totalFiles=len(files)),
            "files": [content.to_client_file(f, staff.get("subject")) for f in files],
        }

    # ----------------------
    # Whiteboards
    # ----------------------
    @app.get("/whiteboards")
    def list_whiteboards(current=Depends(get_current_user), db: Database = Depends(get_db)):
        boards = list_visible(db, WHITEBOARDS, current, WHITEBOARD_OWNER)
        return [content.to_client_whiteboard(w, current.get("subject")) for w in boards]

    @app.post("/whiteboards", status_code=201, dependencies=recorded)
    def create_whiteboard(body: WhiteboardCreate, current=Depends(get_current_user), db: Database = Depends(get_db)):
        doc = content.new_whiteboard(current, body.title, body.imageData, body.isShared)
        return content.to_client_whiteboard(create_document(db, WHITEBOARDS, doc), current.get("subject"))

    @app.put("/whiteboards/{board_id}", dependencies=recorded)
    def update_whiteboard(board_id: str, body: WhiteboardUpdate, current=Depends(get_current_user), db: Database = Depends(get_db)):
        board = get_owned(db, WHITEBOARDS, board_id, current, WHITEBOARD_OWNER, "Whiteboard")
        set_fields, unset_fields = sharing_changes(current, body.isShared)
        if body.title is not None:
            set_fields["title"] = body.title
        if body.imageData is not None:
            set_fields["imageData"] = body.imageData
        updated = update_item(db, WHITEBOARDS, board, set_fields, unset_fields)
        return content.to_client_whiteboard(updated, current.get("subject"))

    @app.delete("/whiteboards/{board_id}")
    def delete_whiteboard(board_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
        board = get_owned(db, WHITEBOARDS, board_id, current, WHITEBOARD_OWNER, "Whiteboard", action="delete")
        delete_item(db, WHITEBOARDS, board)
        return {"message": "Whiteboard deleted successfully"}

    @app.post("/whiteboards/save/{board_id}", status_code=201)
    def save_whiteboard(board_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
        _require_student(current, "drawings")
        source = get_shared(db, WHITEBOARDS, board_id, "Whiteboard")
        saved = create_document(db, WHITEBOARDS, content.clone_whiteboard(source, current))
        logger.info("Student %s saved whiteboard %s as %s", current["_id"], source["_id"], saved["_id"])
        return content.to_client_whiteboard(saved, current.get("subject"))

    @app.get("/whiteboards/search/{staff_id}")
    def whiteboards_by_staff(staff_id: str, current=Depends(get_current_user), db: Database = Depends(get_db)):
        staff = _staff_or_404(db, staff_id)
        boards = list_shared_by(db, WHITEBOARDS, staff, WHITEBOARD_OWNER)
        return {
            "teacherInfo": content.teacher_info(staff, totalDrawings=len(boards)),
            "drawings": [content.to_client_whiteboard(w, staff.get("subject")) for w in boards],
        }

    # ----------------------
    # Forum
    # ----------------------
    @app.get("/forum/questions")
    def list_questions(db: Database = Depends(get_db)):
        return forum.list_questions(db)

    @app.get("/forum/questions/{question_id}")
    def get_question(question_id: str, db: Database = Depends(get_db)):
        return forum.populate(db, [forum.get_question(db, question_id)])[0]

    @app.post("/forum/questions", status_code=201, dependencies=recorded)
    def create_question(body: QuestionCreate, current=Depends(get_current_user), db: Database = Depends(get_db)):
        question = forum.create_question(db, current, body.title, body.content, body.tags, body.teacherCode)
        return forum.populate(db, [question])[0]

    @app.post("/forum/questions/{question_id}/answers", status_code=201, dependencies=recorded)
    def add_answer(question_id: str, body: AnswerCreate, current=Depends(get_current_user), db: Database = Depends(get_db)):
        return forum.add_answer(db, question_id, current, body.content)

    @app.patch("/forum/questions/{question_id}/status")
    def update_status(question_id: str, body: StatusUpdate, current=Depends(get_current_user), db: Database = Depends(get_db)):
        question = forum.set_status(db, question_id, current, body.status)
        return forum.populate(db, [question])[0]

    # ----------------------
    # Recovery
    # ----------------------
    @app.get("/recovery/user-recovery-data")
    def recovery_data(request: Request, current=Depends(get_current_user)):
        log = get_recovery_log(request)
        return {"success": True, "recoveryData": log.entries_for(str(current["_id"]))}

    @app.delete("/recovery/user-recovery-data/{filename}")
    def delete_recovery_data(filename: str, request: Request, current=Depends(get_current_user)):
        if not filename.startswith(f"{current['_id']}_"):
            raise ForbiddenError("Access denied to this recovery file")
        if not get_recovery_log(request).delete(filename):
            raise NotFoundError("Recovery file not found or could not be deleted")
        return {"success": True, "message": "Recovery data deleted successfully"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
