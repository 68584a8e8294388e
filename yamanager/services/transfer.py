"""
Staff transfer — XLSX import and PDF export of staff data (admin only).
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from openpyxl import load_workbook
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from yamanager.core.config import settings
from yamanager.core.exceptions import DomainError, ErrorCode
from yamanager.db.transaction import run_in_transaction
from yamanager.models.enums import Role, Status
from yamanager.models.user import User
from yamanager.services.guard import SYSTEM, Action, Principal, ensure
from yamanager.services.policy import Policy, snapshot_policy, validate_policy
from yamanager.services.queries import QueryFacade, UserBalance

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("subject", "name", "email")
OPTIONAL_COLUMNS = ("role", "vacation_days_total", "overtime_hours_taken_budget")


@dataclass(frozen=True)
class StaffRow:
    line: int
    subject: str
    name: str
    email: str
    role: Role
    vacation_days_total: float | None
    overtime_hours_taken_budget: float | None


@dataclass(frozen=True)
class ImportResult:
    created: int
    skipped: int


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _number(value: Any, column: str, line: int) -> float | None:
    if value is None or _text(value) == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise DomainError(ErrorCode.INVALID_REQUEST, f"row {line}: {column} is not a number") from exc


def parse_workbook(content: bytes) -> list[StaffRow]:
    """Read staff rows from the first worksheet of an XLSX file."""
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as exc:
        raise DomainError(ErrorCode.INVALID_REQUEST, "file is not a readable XLSX workbook") from exc

    try:
        rows = workbook.worksheets[0].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            raise DomainError(ErrorCode.INVALID_REQUEST, "worksheet is empty")
        columns = {_text(name).lower(): idx for idx, name in enumerate(header) if _text(name)}
        missing = [c for c in REQUIRED_COLUMNS if c not in columns]
        if missing:
            raise DomainError(ErrorCode.INVALID_REQUEST, f"missing column(s): {', '.join(missing)}")

        parsed = []
        for line, values in enumerate(rows, start=2):
            def cell(column: str) -> Any:
                idx = columns.get(column)
                return values[idx] if idx is not None and idx < len(values) else None

            if all(_text(v) == "" for v in values):
                continue
            subject, name, email = (_text(cell(c)) for c in REQUIRED_COLUMNS)
            if not subject or not name or not email:
                raise DomainError(ErrorCode.INVALID_REQUEST, f"row {line}: subject, name and email are required")
            raw_role = _text(cell("role")).upper() or Role.EMPLOYEE.value
            try:
                role = Role(raw_role)
            except ValueError as exc:
                raise DomainError(ErrorCode.INVALID_REQUEST, f"row {line}: unknown role {raw_role}") from exc
            parsed.append(
                StaffRow(
                    line=line,
                    subject=subject,
                    name=name,
                    email=email.lower(),
                    role=role,
                    vacation_days_total=_number(cell("vacation_days_total"), "vacation_days_total", line),
                    overtime_hours_taken_budget=_number(
                        cell("overtime_hours_taken_budget"), "overtime_hours_taken_budget", line
                    ),
                )
            )
        return parsed
    finally:
        workbook.close()


class StaffTransfer:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def import_staff(self, actor: Principal, content: bytes) -> ImportResult:
        """Create ACCEPTED users for unseen subjects; known subjects are skipped."""
        ensure(actor, Action.TRANSFER_STAFF_DATA, SYSTEM)
        rows = parse_workbook(content)

        async def _import(session: AsyncSession) -> ImportResult:
            result = await session.execute(select(User.external_subject))
            known = set(result.scalars().all())
            created = skipped = 0
            for row in rows:
                if row.subject in known:
                    skipped += 1
                    continue
                user = User(
                    external_subject=row.subject,
                    name=row.name,
                    email=row.email,
                    role=row.role.value,
                    status=Status.ACCEPTED.value,
                )
                session.add(user)
                await session.flush()
                policy = await snapshot_policy(session, user.id, row.role.value, finalized=True)
                override = Policy(
                    vacation_days_total=(
                        policy.vacation_days_total
                        if row.vacation_days_total is None
                        else row.vacation_days_total
                    ),
                    overtime_hours_taken_budget=(
                        policy.overtime_hours_taken_budget
                        if row.overtime_hours_taken_budget is None
                        else row.overtime_hours_taken_budget
                    ),
                    notification_lead_time=policy.notification_lead_time,
                )
                validate_policy(override)
                override.apply_to(policy)
                known.add(row.subject)
                created += 1
            return ImportResult(created=created, skipped=skipped)

        summary = await run_in_transaction(self.session, _import)
        logger.info(
            "User %d imported staff: %d created, %d skipped", actor.id, summary.created, summary.skipped
        )
        return summary

    async def export_staff(self, actor: Principal, today: date) -> tuple[str, bytes]:
        """Render every user with balances to a PDF; returns (filename, bytes)."""
        ensure(actor, Action.TRANSFER_STAFF_DATA, SYSTEM)
        balances = await QueryFacade(self.session).all_users()
        content = render_staff_pdf(balances, today)
        logger.info("User %d exported %d users", actor.id, len(balances))
        return f"yamanager-export-{today:%Y%m%d}.pdf", content


def render_staff_pdf(balances: list[UserBalance], today: date) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
        title=f"{settings.PROJECT_NAME} staff export",
    )
    styles = getSampleStyleSheet()

    headers = [
        "ID", "Name", "Email", "Role", "Status",
        "Vacation left (days)", "Overtime taken (h)", "Overtime budget (h)",
    ]
    data = [headers]
    for b in balances:
        data.append([
            str(b.user.id),
            b.user.name,
            b.user.email,
            b.user.role,
            b.user.status,
            f"{float(b.remaining_vacation):.2f}",
            f"{float(b.overtime.taken):g}",
            f"{float(b.overtime.budget):g}",
        ])

    table = Table(data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#366092")),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (5, 1), (-1, -1), "RIGHT"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.whitesmoke]),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ]))

    story = [
        Paragraph(f"{settings.PROJECT_NAME} staff export", styles["Heading1"]),
        Paragraph(f"Generated {today:%Y/%m/%d}", styles["Normal"]),
        Spacer(1, 12),
        table,
    ]
    doc.build(story)
    return buffer.getvalue()
