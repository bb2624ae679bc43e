from __future__ import annotations

from dataclasses import dataclass

from .academics.access import CohortAccess
from .academics.mysql_academic_repository import MySQLAcademicRepository
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceService
from .audit.auditing import AuditedAttendanceRepository
from .audit.mysql_audit_repository import MySQLAuditRepository
from .core.constants import DEFAULT_MAX_ROSTER_SIZE
from .database.connection import DatabaseConnection, DBConfig
from .reports.service import ReportService
from .settings.mysql_settings_repository import MySQLSettingsRepository
from .settings.service import SettingsService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    academics_repo: MySQLAcademicRepository
    attendance_repo: AuditedAttendanceRepository
    settings_repo: MySQLSettingsRepository
    audit_repo: MySQLAuditRepository

    settings_service: SettingsService
    attendance_service: AttendanceService
    report_service: ReportService


def build_container(
    *,
    db_config: dict,
    audit_enabled: bool = True,
    max_roster_size: int = DEFAULT_MAX_ROSTER_SIZE,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    academics_repo = MySQLAcademicRepository(conn)
    settings_repo = MySQLSettingsRepository(conn)
    audit_repo = MySQLAuditRepository(conn)
    attendance_repo = AuditedAttendanceRepository(
        MySQLAttendanceRepository(conn),
        audit_repo,
        enabled=audit_enabled,
    )

    access = CohortAccess(academics_repo)
    settings_service = SettingsService(settings_repo)
    attendance_service = AttendanceService(
        attendance_repo,
        academics_repo,
        settings_service,
        access=access,
        max_roster_size=max_roster_size,
    )
    report_service = ReportService(attendance_repo, academics_repo, settings_service, access=access)

    return Container(
        conn=conn,
        academics_repo=academics_repo,
        attendance_repo=attendance_repo,
        settings_repo=settings_repo,
        audit_repo=audit_repo,
        settings_service=settings_service,
        attendance_service=attendance_service,
        report_service=report_service,
    )
