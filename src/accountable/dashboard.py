"""The signed-in user's dashboard and its deadline monitor.

``Dashboard`` holds the user's task list and balance, and performs the
dashboard actions: loading tasks, scheduling a verification call and the
simulated top-up. Service failures never escape ``load()``: the cached
tasks stay on screen and ``error`` carries the inline message.

``DeadlineMonitor`` refreshes the dashboard on a fixed interval through a
``Scheduler``. It reminds the user shortly before a call starts, and when
a pending task's deadline passes it nudges the user and marks the task
missed.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from accountable.backend._mapping import parse_timestamp
from accountable.backend.models import Profile, SubscriptionTier, Task, TaskStatus
from accountable.backend.protocol import DataService
from accountable.errors import ServiceUnavailable, Unauthorized, ValidationError
from accountable.identity import User
from accountable.notifications import LogNotifier, Notification, Notifier, deliver
from accountable.pricing import tier_for
from accountable.scheduler import CancelToken, Clock, Scheduler
from accountable.validation import ensure_valid, iso_datetime, max_length, required

logger = logging.getLogger("accountable.dashboard")

type ProfileListener = Callable[[Profile], None]

_TASK_RULES = {
    "title": [required, max_length(200)],
    "scheduled_at": [required, iso_datetime],
    "ends_at": [iso_datetime],
    "description": [max_length(2000)],
}


@dataclass(frozen=True, slots=True)
class DashboardStats:
    calls_remaining: int
    verified: int
    pending: int
    missed: int


class Dashboard:
    """Task list and balance for one user.

    *on_profile* is called with the updated profile after a top-up, so the
    resolver can refresh the identity the rest of the app sees.
    """

    def __init__(
        self,
        user: User,
        service: DataService,
        *,
        on_profile: ProfileListener | None = None,
    ) -> None:
        self._user = user
        self._service = service
        self._on_profile = on_profile
        self._tasks: list[Task] = []
        self.error: str | None = None
        self.loaded = False

    @property
    def user(self) -> User:
        return self._user

    @property
    def tasks(self) -> tuple[Task, ...]:
        """Tasks, newest ``scheduled_at`` first."""
        return tuple(self._tasks)

    @property
    def stats(self) -> DashboardStats:
        counts = {status: 0 for status in TaskStatus}
        for task in self._tasks:
            counts[task.status] += 1
        return DashboardStats(
            calls_remaining=self._user.credits,
            verified=counts[TaskStatus.VERIFIED],
            pending=counts[TaskStatus.PENDING],
            missed=counts[TaskStatus.MISSED],
        )

    def _sort(self) -> None:
        self._tasks.sort(key=lambda t: t.scheduled_at, reverse=True)

    async def load(self) -> tuple[Task, ...]:
        try:
            tasks = await self._service.list_tasks(self._user.id)
        except ServiceUnavailable as exc:
            logger.warning("Could not load tasks for %s: %s", self._user.id, exc)
            self.error = "Could not load your tasks. Showing the last known list."
            return self.tasks
        except Unauthorized as exc:
            logger.info("Task load rejected for %s: %s", self._user.id, exc.detail)
            self.error = "Your session has expired. Please sign in again."
            return self.tasks
        self._tasks = list(tasks)
        self._sort()
        self.error = None
        self.loaded = True
        return self.tasks

    async def schedule_task(
        self,
        title: str,
        scheduled_at: str | datetime,
        ends_at: str | datetime | None = None,
        description: str | None = None,
    ) -> Task:
        """Schedule a verification call.

        Raises ``ValidationError`` for malformed input. A service failure
        sets ``error`` and re-raises ``ServiceUnavailable``.
        """
        data = ensure_valid(
            {
                "title": title,
                "scheduled_at": _iso(scheduled_at),
                "ends_at": _iso(ends_at),
                "description": description,
            },
            _TASK_RULES,
        )
        start = parse_timestamp(data["scheduled_at"])
        end = parse_timestamp(data["ends_at"]) if data.get("ends_at") else None
        if end is not None and end <= start:
            raise ValidationError({"ends_at": ["Must be after the start time"]})

        task = Task(
            id="",
            user_id=self._user.id,
            title=data["title"],
            scheduled_at=start,
            ends_at=end,
            description=data.get("description") or None,
        )
        try:
            created = await self._service.insert_task(task)
        except ServiceUnavailable:
            self.error = "Error creating task. Please try again."
            raise
        self._tasks.append(created)
        self._sort()
        self.error = None
        logger.info("Scheduled task %s for %s", created.id, self._user.id)
        return created

    async def set_status(self, task_id: str, status: TaskStatus) -> Task:
        updated = await self._service.update_task(task_id, status=status)
        self._tasks = [updated if t.id == task_id else t for t in self._tasks]
        return updated

    async def top_up(self, tier: SubscriptionTier | str) -> Profile:
        """Simulated payment: add the tier's calls and switch to it."""
        plan = tier_for(tier)
        current = await self._service.fetch_profile(self._user.id)
        balance = current.calls_remaining if current is not None else self._user.credits
        profile = await self._service.update_profile(
            self._user.id,
            tier=plan.tier,
            calls_remaining=balance + plan.calls,
        )
        self._user = User.from_profile(profile)
        logger.info("Topped up %s with %d calls (%s)", self._user.id, plan.calls, plan.tier)
        if self._on_profile is not None:
            self._on_profile(profile)
        return profile


def _iso(value: str | datetime | None) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class DeadlineMonitor:
    """Poll the dashboard and act on upcoming and passed deadlines.

    Each reminder and each nudge fires at most once per task.
    """

    def __init__(
        self,
        dashboard: Dashboard,
        scheduler: Scheduler,
        notifier: Notifier | None = None,
        *,
        clock: Clock | None = None,
        poll_interval: float = 30.0,
        lead_time: float = 900.0,
    ) -> None:
        self._dashboard = dashboard
        self._scheduler = scheduler
        self._notifier = notifier or LogNotifier()
        self._clock = clock or scheduler.clock
        self._poll_interval = poll_interval
        self._lead = timedelta(seconds=lead_time)
        self._reminded: set[str] = set()
        self._nudged: set[str] = set()
        self._token: CancelToken | None = None

    @property
    def running(self) -> bool:
        return self._token is not None and not self._token.cancelled

    def start(self) -> CancelToken:
        """Schedule polling; the first check is due immediately."""
        if self._token is None or self._token.cancelled:
            self._token = self._scheduler.every(
                self._poll_interval, self.check, name="deadline-monitor", immediately=True
            )
        return self._token

    def stop(self) -> None:
        if self._token is not None:
            self._token.cancel()

    async def check(self) -> None:
        """One polling pass: refresh, then remind and nudge."""
        await self._dashboard.load()
        now = datetime.fromtimestamp(self._clock.now(), UTC)

        for task in self._dashboard.tasks:
            if task.status is not TaskStatus.PENDING:
                continue
            if task.deadline <= now:
                await self._nudge(task)
            elif task.scheduled_at - self._lead <= now < task.scheduled_at:
                self._remind(task)

    def _remind(self, task: Task) -> None:
        if task.id in self._reminded:
            return
        self._reminded.add(task.id)
        deliver(
            self._notifier,
            Notification(
                title="Verification call coming up",
                body=f"{task.title} starts at {task.scheduled_at:%H:%M}. Be ready to show your work.",
                tag=f"reminder:{task.id}",
            ),
        )

    async def _nudge(self, task: Task) -> None:
        if task.id in self._nudged:
            return
        try:
            await self._dashboard.set_status(task.id, TaskStatus.MISSED)
        except (ServiceUnavailable, Unauthorized) as exc:
            logger.warning("Could not mark task %s missed: %s", task.id, exc)
            return
        self._nudged.add(task.id)
        deliver(
            self._notifier,
            Notification(
                title="Deadline passed",
                body=f"{task.title} was not verified in time. Schedule a new call to stay on track.",
                tag=f"missed:{task.id}",
            ),
        )
