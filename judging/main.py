import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, File, Header, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field, StrictInt, model_validator

from .config import Settings, load_settings
from .errors import (
    AuthenticationError,
    ConflictError,
    ImportFormatError,
    IncompleteSubmissionError,
    LockedError,
    NotFoundError,
    PermissionDeniedError,
    RubricError,
    ScoreRangeError,
    StoreError,
)
from .identity import require_role
from .models import Judge, Principal, RankedStudent, Role, StudentSummary, SuperJudge
from .rubric import is_penalty, resolve_range
from .service import JudgingService
from .store import JudgingStore

logger = logging.getLogger(__name__)


# -----------------------
# Request bodies
# -----------------------
class LoginIn(BaseModel):
    username: str
    password: str
    role: Role


class NameIn(BaseModel):
    name: str = Field(min_length=1)


class CriterionIn(BaseModel):
    name: str = Field(min_length=1)
    min_score: Optional[StrictInt] = None
    max_score: Optional[StrictInt] = None
    is_penalty: bool = False

    @model_validator(mode="after")
    def _ordered(self):
        if self.min_score is not None and self.max_score is not None and self.min_score > self.max_score:
            raise ValueError("min_score must not exceed max_score")
        return self


class StudentIn(BaseModel):
    name: str = Field(min_length=1)
    group_id: Optional[str] = None


class StudentGroupIn(BaseModel):
    group_id: str


class AccountIn(BaseModel):
    name: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TopicIn(BaseModel):
    name: str = Field(min_length=1)
    group_id: str
    time_limit: Optional[int] = Field(default=None, ge=0)


class ScoreIn(BaseModel):
    value: StrictInt


class DraftIn(BaseModel):
    scores: Dict[str, Optional[StrictInt]]


class CorrectionIn(BaseModel):
    scores: Dict[str, StrictInt]


class NoteIn(BaseModel):
    notes: str


# -----------------------
# Serialization helpers
# -----------------------
def account_out(account) -> Dict:
    data = asdict(account)
    data.pop("password_hash", None)
    return data


def summary_out(summary: StudentSummary) -> Dict:
    data = asdict(summary)
    data["average_score"] = round(summary.average_score, 2)
    data["judges_considered"] = summary.judges_considered
    data["submitted_count"] = summary.submitted_count
    return data


def ranked_out(item: RankedStudent) -> Dict:
    return {
        "rank": item.rank,
        "place": item.place,
        "place_label": item.place_label,
        "student_id": item.summary.student_id,
        "student_name": item.summary.student_name,
        "total_score": item.summary.total_score,
        "average_score": round(item.summary.average_score, 2),
        "all_submitted": item.summary.all_submitted,
        "submitted_count": item.summary.submitted_count,
        "judge_count": len(item.summary.judges),
    }


# -----------------------
# Dependencies
# -----------------------
def get_service(request: Request) -> JudgingService:
    return request.app.state.service


def current_principal(
    x_session_token: Optional[str] = Header(default=None),
    service: JudgingService = Depends(get_service),
) -> Principal:
    return service.identity.principal_for_token(x_session_token)


def roles(*allowed: Role):
    def dependency(principal: Principal = Depends(current_principal)) -> Principal:
        return require_role(principal, *allowed)

    return dependency


def check_pair_access(principal: Principal, judge_id: str) -> None:
    # judges only touch their own cells
    if principal.role is Role.judge and principal.id != judge_id:
        raise PermissionDeniedError("Judges may only access their own scores.")


# -----------------------
# App
# -----------------------
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(level=settings.log_level)
        logger.info("Starting judging coordinator with database %s", settings.db_path)
        app.state.service.store.init_db()
        app.state.service.identity.ensure_admin(settings.admin_username, settings.admin_password)
        yield
        logger.info("Shutting down judging coordinator")

    app = FastAPI(title="Judging Coordinator", version="0.1.0", lifespan=lifespan)
    app.state.service = JudgingService(JudgingStore(settings.db_path), settings.session_ttl_hours)
    register_error_handlers(app)
    register_routes(app)
    return app


def register_error_handlers(app: FastAPI) -> None:
    def handler(status_code: int, extra=None):
        async def _handle(request: Request, exc: Exception):
            body = {"detail": str(exc)}
            if extra:
                body.update(extra(exc))
            return JSONResponse(status_code=status_code, content=body)

        return _handle

    app.add_exception_handler(
        ScoreRangeError,
        handler(
            422,
            lambda e: {"criterion": e.criterion_name, "min_score": e.min_score, "max_score": e.max_score},
        ),
    )
    app.add_exception_handler(RubricError, handler(422))
    app.add_exception_handler(LockedError, handler(409, lambda e: {"submitted": True}))
    app.add_exception_handler(IncompleteSubmissionError, handler(409, lambda e: {"blocking": e.blocking}))
    app.add_exception_handler(ConflictError, handler(409))
    app.add_exception_handler(NotFoundError, handler(404))
    app.add_exception_handler(AuthenticationError, handler(401))
    app.add_exception_handler(PermissionDeniedError, handler(403))
    app.add_exception_handler(ImportFormatError, handler(400))
    app.add_exception_handler(StoreError, handler(503))


def register_routes(app: FastAPI) -> None:
    staff = roles(Role.admin, Role.superjudge)
    admin_only = roles(Role.admin)
    superjudge_only = roles(Role.superjudge)
    judge_only = roles(Role.judge)
    scorers = roles(Role.judge, Role.superjudge)

    # -----------------------
    # Routes: Home & sessions
    # -----------------------
    @app.get("/")
    def home():
        return {"app": "Judging Coordinator", "version": "0.1.0"}

    @app.post("/login")
    def login(body: LoginIn, service: JudgingService = Depends(get_service)):
        token, principal = service.identity.authenticate(body.username, body.password, body.role)
        return {"token": token, "principal": asdict(principal)}

    @app.post("/logout")
    def logout(
        x_session_token: Optional[str] = Header(default=None),
        service: JudgingService = Depends(get_service),
    ):
        if x_session_token:
            service.identity.logout(x_session_token)
        return {"ok": True}

    @app.get("/me")
    def me(principal: Principal = Depends(current_principal)):
        return asdict(principal)

    # -----------------------
    # Routes: Rubric
    # -----------------------
    @app.get("/criteria")
    def list_criteria(
        _: Principal = Depends(current_principal), service: JudgingService = Depends(get_service)
    ):
        out = []
        for c in service.store.get_criteria(allow_stale=True):
            lo, hi = resolve_range(c)
            out.append({**asdict(c), "range": [lo, hi], "penalty": is_penalty(c)})
        return out

    @app.post("/criteria", status_code=201)
    def add_criterion(
        body: CriterionIn, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)
    ):
        return asdict(service.add_criterion(body.name, body.min_score, body.max_score, body.is_penalty))

    @app.delete("/criteria/{criterion_id}")
    def remove_criterion(
        criterion_id: str, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)
    ):
        service.store.remove_criterion(criterion_id)
        return {"ok": True}

    @app.post("/criteria/migrate-ranges")
    def migrate_ranges(_: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)):
        return [asdict(c) for c in service.migrate_criterion_ranges()]

    # -----------------------
    # Routes: Groups & assignments
    # -----------------------
    @app.get("/groups")
    def list_groups(_: Principal = Depends(current_principal), service: JudgingService = Depends(get_service)):
        return [asdict(g) for g in service.store.get_groups(allow_stale=True)]

    @app.post("/groups", status_code=201)
    def add_group(body: NameIn, _: Principal = Depends(staff), service: JudgingService = Depends(get_service)):
        return asdict(service.store.add_group(body.name))

    @app.patch("/groups/{group_id}")
    def rename_group(
        group_id: str, body: NameIn, _: Principal = Depends(staff), service: JudgingService = Depends(get_service)
    ):
        return asdict(service.graph.rename_group(group_id, body.name))

    @app.delete("/groups/{group_id}")
    def delete_group(group_id: str, _: Principal = Depends(staff), service: JudgingService = Depends(get_service)):
        return service.graph.delete_group(group_id)

    @app.get("/groups/{group_id}/stats")
    def group_stats(group_id: str, _: Principal = Depends(staff), service: JudgingService = Depends(get_service)):
        stats = service.graph.group_stats(group_id)
        stats["judges"] = [account_out(j) for j in stats["judges"]]
        stats["students"] = [asdict(s) for s in stats["students"]]
        return stats

    @app.post("/groups/{group_id}/judges/{judge_id}")
    def assign_judge(
        group_id: str, judge_id: str, _: Principal = Depends(staff), service: JudgingService = Depends(get_service)
    ):
        return {"added": service.graph.assign_judge_to_group(judge_id, group_id)}

    @app.delete("/groups/{group_id}/judges/{judge_id}")
    def unassign_judge(
        group_id: str, judge_id: str, _: Principal = Depends(staff), service: JudgingService = Depends(get_service)
    ):
        return {"removed": service.graph.remove_judge_from_group(judge_id, group_id)}

    @app.get("/groups/{group_id}/topics")
    def group_topics(
        group_id: str, _: Principal = Depends(current_principal), service: JudgingService = Depends(get_service)
    ):
        return [asdict(t) for t in service.store.get_topics_by_group(group_id)]

    @app.get("/validation")
    def validate(_: Principal = Depends(staff), service: JudgingService = Depends(get_service)):
        return {"errors": service.validate_assignments()}

    # -----------------------
    # Routes: Roster
    # -----------------------
    @app.get("/students")
    def list_students(_: Principal = Depends(staff), service: JudgingService = Depends(get_service)):
        return [asdict(s) for s in service.store.get_students(allow_stale=True)]

    @app.post("/students", status_code=201)
    def add_student(body: StudentIn, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)):
        student = service.store.add_student(body.name)
        if body.group_id:
            student = service.graph.assign_student_to_group(student.id, body.group_id)
        return asdict(student)

    @app.delete("/students/{student_id}")
    def remove_student(
        student_id: str, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)
    ):
        service.store.remove_student(student_id)
        return {"ok": True}

    @app.put("/students/{student_id}/group")
    def move_student(
        student_id: str,
        body: StudentGroupIn,
        _: Principal = Depends(staff),
        service: JudgingService = Depends(get_service),
    ):
        return asdict(service.graph.assign_student_to_group(student_id, body.group_id))

    @app.delete("/students/{student_id}/group")
    def unassign_student(
        student_id: str, _: Principal = Depends(staff), service: JudgingService = Depends(get_service)
    ):
        return asdict(service.graph.remove_student_from_group(student_id))

    @app.get("/judges")
    def list_judges(_: Principal = Depends(staff), service: JudgingService = Depends(get_service)):
        return [account_out(j) for j in service.store.get_judges(allow_stale=True)]

    @app.post("/judges", status_code=201)
    def add_judge(body: AccountIn, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)):
        judge: Judge = service.add_judge(body.name, body.username, body.password)
        return account_out(judge)

    @app.delete("/judges/{judge_id}")
    def remove_judge(judge_id: str, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)):
        service.store.remove_judge(judge_id)
        return {"ok": True}

    @app.get("/superjudges")
    def list_super_judges(_: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)):
        return [account_out(sj) for sj in service.store.get_super_judges()]

    @app.post("/superjudges", status_code=201)
    def add_super_judge(
        body: AccountIn, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)
    ):
        sj: SuperJudge = service.add_super_judge(body.name, body.username, body.password)
        return account_out(sj)

    @app.delete("/superjudges/{super_judge_id}")
    def remove_super_judge(
        super_judge_id: str, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)
    ):
        service.store.remove_super_judge(super_judge_id)
        return {"ok": True}

    @app.post("/topics", status_code=201)
    def add_topic(body: TopicIn, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)):
        if service.store.get_group(body.group_id) is None:
            raise NotFoundError("group", body.group_id)
        return asdict(service.store.add_topic(body.name, body.group_id, body.time_limit))

    @app.delete("/topics/{topic_id}")
    def remove_topic(topic_id: str, _: Principal = Depends(admin_only), service: JudgingService = Depends(get_service)):
        service.store.remove_topic(topic_id)
        return {"ok": True}

    # -----------------------
    # Routes: Judge
    # -----------------------
    @app.get("/me/students")
    def my_students(principal: Principal = Depends(judge_only), service: JudgingService = Depends(get_service)):
        out = []
        for student in service.graph.students_for_judge(principal.id):
            out.append({**asdict(student), "submitted": service.submissions.is_submitted(student.id, principal.id)})
        return out

    @app.get("/me/groups")
    def my_groups(principal: Principal = Depends(judge_only), service: JudgingService = Depends(get_service)):
        return [asdict(g) for g in service.graph.groups_for_judge(principal.id)]

    @app.get("/scores/{student_id}/{judge_id}")
    def pair_scores(
        student_id: str,
        judge_id: str,
        principal: Principal = Depends(scorers),
        service: JudgingService = Depends(get_service),
    ):
        check_pair_access(principal, judge_id)
        status = service.submissions.submission_status(student_id, judge_id)
        status["scores"] = service.ledger.all_scores_for(student_id, judge_id)
        return status

    @app.put("/scores/{student_id}/{judge_id}/{criterion_id}")
    def submit_score(
        student_id: str,
        judge_id: str,
        criterion_id: str,
        body: ScoreIn,
        principal: Principal = Depends(judge_only),
        service: JudgingService = Depends(get_service),
    ):
        check_pair_access(principal, judge_id)
        return {"criterion_id": criterion_id, "value": service.submit_score(student_id, judge_id, criterion_id, body.value)}

    @app.put("/scores/{student_id}/{judge_id}")
    def save_draft(
        student_id: str,
        judge_id: str,
        body: DraftIn,
        principal: Principal = Depends(judge_only),
        service: JudgingService = Depends(get_service),
    ):
        check_pair_access(principal, judge_id)
        return {"scores": service.save_draft(student_id, judge_id, body.scores)}

    @app.post("/submissions/{student_id}/{judge_id}")
    def submit(
        student_id: str,
        judge_id: str,
        principal: Principal = Depends(judge_only),
        service: JudgingService = Depends(get_service),
    ):
        check_pair_access(principal, judge_id)
        return service.submit(student_id, judge_id)

    @app.post("/groups/{group_id}/submit-all")
    def submit_all(
        group_id: str, principal: Principal = Depends(judge_only), service: JudgingService = Depends(get_service)
    ):
        submitted: List[str] = service.submit_all_for_group(group_id, principal.id)
        return {"submitted": submitted}

    @app.get("/notes/{student_id}/{judge_id}")
    def get_note(
        student_id: str,
        judge_id: str,
        principal: Principal = Depends(scorers),
        service: JudgingService = Depends(get_service),
    ):
        check_pair_access(principal, judge_id)
        return {"notes": service.store.get_note(student_id, judge_id) or ""}

    @app.put("/notes/{student_id}/{judge_id}")
    def set_note(
        student_id: str,
        judge_id: str,
        body: NoteIn,
        principal: Principal = Depends(judge_only),
        service: JudgingService = Depends(get_service),
    ):
        check_pair_access(principal, judge_id)
        service.store.set_note(student_id, judge_id, body.notes)
        return {"notes": body.notes}

    # -----------------------
    # Routes: Super judge
    # -----------------------
    @app.delete("/submissions/{student_id}/{judge_id}")
    def unlock(
        student_id: str,
        judge_id: str,
        _: Principal = Depends(superjudge_only),
        service: JudgingService = Depends(get_service),
    ):
        return service.unlock(student_id, judge_id)

    @app.post("/corrections/{student_id}/{judge_id}")
    def unlock_and_edit(
        student_id: str,
        judge_id: str,
        body: CorrectionIn,
        _: Principal = Depends(superjudge_only),
        service: JudgingService = Depends(get_service),
    ):
        scores = service.unlock_and_edit(student_id, judge_id, body.scores)
        return {"scores": scores, "submitted": service.submissions.is_submitted(student_id, judge_id)}

    @app.get("/students/{student_id}/summary")
    def student_summary(
        student_id: str, _: Principal = Depends(staff), service: JudgingService = Depends(get_service)
    ):
        return summary_out(service.get_student_summary(student_id))

    @app.get("/groups/{group_id}/rankings")
    def rankings(group_id: str, _: Principal = Depends(staff), service: JudgingService = Depends(get_service)):
        return [ranked_out(r) for r in service.rank_students(group_id)]

    # -----------------------
    # Routes: Spreadsheets
    # -----------------------
    @app.get("/export/scores.csv")
    def export_csv(_: Principal = Depends(staff), service: JudgingService = Depends(get_service)):
        return Response(
            content=service.export_csv(),
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="scores.csv"'},
        )

    @app.get("/export/scores.xlsx")
    def export_xlsx(_: Principal = Depends(staff), service: JudgingService = Depends(get_service)):
        return Response(
            content=service.export_xlsx(),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={"Content-Disposition": 'attachment; filename="scores.xlsx"'},
        )

    @app.post("/import/students")
    def import_students(
        file: UploadFile = File(...),
        _: Principal = Depends(admin_only),
        service: JudgingService = Depends(get_service),
    ):
        return service.import_students(file.filename, file.file.read())

    @app.post("/import/judges")
    def import_judges(
        file: UploadFile = File(...),
        _: Principal = Depends(admin_only),
        service: JudgingService = Depends(get_service),
    ):
        return service.import_judges(file.filename, file.file.read())


app = create_app()
