import logging
from datetime import date, datetime
from typing import Callable, Dict, List, Optional

from sqlmodel import Session, select

from core.config import (
    ATTENDANCE_TIMEZONE,
    CHECK_IN_REMINDER_TIME,
    CHECK_OUT_REMINDER_TIME,
)
from models.attendance_log import AttendanceLog
from models.user import User
from utils.timezone_helpers import (
    civil_date,
    from_utc_to_local,
    next_local_midnight,
    parse_hh_mm,
    utc_now,
)
from utils.ttl_store import TTLStore

logger = logging.getLogger(__name__)

CHECK_IN = "check_in"
CHECK_OUT = "check_out"

# (user_ids, kind) -> None. Delivery is owned by the notification service.
Notifier = Callable[[List[str], str], None]


def log_notifier(user_ids: List[str], kind: str) -> None:
    logger.info("Reminder %s due for %d user(s): %s", kind, len(user_ids), user_ids)


def find_missed_check_ins(session: Session, today: date) -> List[str]:
    """Active users with a work location type and no record today."""
    checked_in = select(AttendanceLog.user_id).where(AttendanceLog.date == today)
    users = session.exec(
        select(User.user_id)
        .where(User.is_active == True)  # noqa: E712
        .where(User.work_location_type.is_not(None))
        .where(User.user_id.not_in(checked_in))
        .order_by(User.user_id)
    ).all()
    return list(users)


def find_missed_check_outs(session: Session, today: date) -> List[str]:
    rows = session.exec(
        select(AttendanceLog.user_id)
        .where(AttendanceLog.date == today)
        .where(AttendanceLog.check_in_time.is_not(None))
        .where(AttendanceLog.check_out_time.is_(None))
        .order_by(AttendanceLog.user_id)
    ).all()
    return list(rows)


def _opted_in(session: Session, user_ids: List[str]) -> List[str]:
    if not user_ids:
        return []
    enabled = set(
        session.exec(
            select(User.user_id)
            .where(User.user_id.in_(user_ids))
            .where(User.attendance_notifications_enabled == True)  # noqa: E712
        ).all()
    )
    return [user_id for user_id in user_ids if user_id in enabled]


class ReminderScheduler:
    """
    Sends the daily check-in and check-out reminders at most once per civil day.

    "Already sent" markers live in a TTLStore keyed by kind and date, each
    expiring at the next local midnight.
    """

    def __init__(
        self,
        notifier: Notifier = log_notifier,
        *,
        check_in_time: str = CHECK_IN_REMINDER_TIME,
        check_out_time: str = CHECK_OUT_REMINDER_TIME,
        tz: str = ATTENDANCE_TIMEZONE,
    ):
        self.notifier = notifier
        self.tz = tz
        self.schedule = {
            CHECK_IN: parse_hh_mm(check_in_time),
            CHECK_OUT: parse_hh_mm(check_out_time),
        }
        self.sent = TTLStore()
        self.running = False

    def start(self) -> None:
        self.running = True
        logger.info(
            "Reminder scheduler started (check-in %s, check-out %s, %s)",
            self.schedule[CHECK_IN].strftime("%H:%M"),
            self.schedule[CHECK_OUT].strftime("%H:%M"),
            self.tz,
        )

    def shutdown(self) -> None:
        self.running = False
        self.sent.clear()

    def run_due(self, session: Session, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Fire every reminder whose time has passed today; returns counts sent.

        A reminder is claimed in the TTL store before its recipients are
        looked up, so overlapping runs cannot both send it. If the lookup or
        the notifier fails the claim is released and the next run retries.
        """
        if not self.running:
            logger.debug("Reminder scheduler is stopped; nothing sent")
            return {}

        now = now or utc_now()
        local_now = from_utc_to_local(now, self.tz)
        today = civil_date(now, self.tz)
        expires_at = next_local_midnight(now, self.tz)
        finders = {CHECK_IN: find_missed_check_ins, CHECK_OUT: find_missed_check_outs}

        results: Dict[str, int] = {}
        for kind, at in self.schedule.items():
            key = f"{kind}:{today.isoformat()}"
            if local_now.time() < at:
                continue
            if not self.sent.add_if_absent(key, None, expires_at=expires_at, now=now):
                continue

            try:
                recipients = _opted_in(session, finders[kind](session, today))
                if recipients:
                    self.notifier(recipients, kind)
            except Exception:
                self.sent.pop(key)
                logger.error("Sending %s reminders for %s failed; will retry", kind, today)
                raise

            self.sent.set(key, len(recipients), expires_at=expires_at, now=now)
            logger.info("Sent %d %s reminder(s) for %s", len(recipients), kind, today)
            results[kind] = len(recipients)
        return results
