import datetime
from typing import Any, List, Optional

from loguru import logger

from algorithms import HealthSummary
from db import AsyncHealthEntryRepository, AsyncHealthGoalRepository, LocalStorageRepository
from models import HealthEntry, HealthGoal
from store_base import HEALTH_DATA_KEY, Clock, LocalFirstStore


class HealthStore(LocalFirstStore):
    """Health goals and their per-day entries."""

    def __init__(
        self,
        local: LocalStorageRepository,
        goals_repo: Optional[AsyncHealthGoalRepository] = None,
        entries_repo: Optional[AsyncHealthEntryRepository] = None,
        user_id: Optional[str] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        remote = goals_repo is not None and entries_repo is not None
        super().__init__(local, user_id if remote else None, clock)
        self.goals_repo = goals_repo
        self.entries_repo = entries_repo
        self._goals: List[HealthGoal] = []
        self._entries: List[HealthEntry] = []

    async def load(self) -> None:
        if self.remote_enabled:
            try:
                self._goals = await self.goals_repo.fetch_for_user(self.user_id)
                self._entries = await self.entries_repo.fetch_for_user(self.user_id)
            except Exception:
                logger.exception("Failed to load health data for {}", self.user_id)
                self._goals, self._entries = [], []
            return
        data = self.local.get_json(HEALTH_DATA_KEY, {}) or {}
        self._goals = [HealthGoal.model_validate(g) for g in data.get("goals", [])]
        self._entries = [HealthEntry.model_validate(e) for e in data.get("entries", [])]

    def _save_local(self) -> None:
        self.local.set_json(
            HEALTH_DATA_KEY,
            {
                "goals": [g.model_dump() for g in self._goals],
                "entries": [e.model_dump() for e in self._entries],
            },
        )

    def _persist_goal(self, goal: HealthGoal) -> None:
        if self.remote_enabled:
            self._dispatch("health goal upsert", self.goals_repo.upsert(self.user_id, goal))
        else:
            self._save_local()

    def _persist_entry(self, entry: HealthEntry) -> None:
        if self.remote_enabled:
            self._dispatch(
                "health entry upsert", self.entries_repo.upsert(self.user_id, entry)
            )
        else:
            self._save_local()

    @property
    def goals(self) -> List[HealthGoal]:
        return list(self._goals)

    @property
    def entries(self) -> List[HealthEntry]:
        return list(self._entries)

    def get_goal(self, goal_id: str) -> Optional[HealthGoal]:
        for g in self._goals:
            if g.id == goal_id:
                return g
        return None

    def today(self) -> datetime.date:
        return self.clock().date()

    # goals
    def create_goal(
        self,
        name: str,
        type: str = "custom",
        frequency: str = "daily",
        target: Optional[float] = None,
        unit: Optional[str] = None,
        emoji: Optional[str] = None,
        description: Optional[str] = None,
    ) -> HealthGoal:
        goal = HealthGoal(
            name=name,
            type=type,
            frequency=frequency,
            target=target,
            unit=unit,
            emoji=emoji,
            description=description,
            created_at=self.clock().isoformat(),
        )
        self._goals = self._goals + [goal]
        self._persist_goal(goal)
        return goal

    def update_goal(self, goal_id: str, **fields: Any) -> Optional[HealthGoal]:
        current = self.get_goal(goal_id)
        if current is None:
            return None
        fields.pop("id", None)
        updated = HealthGoal.model_validate({**current.model_dump(), **fields})
        self._goals = [updated if g.id == goal_id else g for g in self._goals]
        self._persist_goal(updated)
        return updated

    def delete_goal(self, goal_id: str) -> bool:
        """Remove a goal together with all of its entries."""
        if self.get_goal(goal_id) is None:
            return False
        self._goals = [g for g in self._goals if g.id != goal_id]
        self._entries = [e for e in self._entries if e.goal_id != goal_id]
        if self.remote_enabled:
            self._dispatch("health goal delete", self.goals_repo.delete(goal_id))
        else:
            self._save_local()
        return True

    def toggle_goal_active(self, goal_id: str) -> Optional[HealthGoal]:
        current = self.get_goal(goal_id)
        if current is None:
            return None
        return self.update_goal(goal_id, active=not current.active)

    def active_goals_by_frequency(self, frequency: str) -> List[HealthGoal]:
        return [g for g in self._goals if g.active and g.frequency == frequency]

    # entries
    def entries_for_date(self, date: str) -> List[HealthEntry]:
        return [e for e in self._entries if e.date == date]

    def entry_for_goal_and_date(self, goal_id: str, date: str) -> Optional[HealthEntry]:
        for e in self._entries:
            if e.goal_id == goal_id and e.date == date:
                return e
        return None

    def mark_goal_complete(
        self,
        goal_id: str,
        date: str,
        value: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> Optional[HealthEntry]:
        """Record completion of a goal on ``date``, updating any existing entry."""
        if self.get_goal(goal_id) is None:
            logger.debug("Health goal {} not found", goal_id)
            return None
        completed_at = self.clock().isoformat()
        existing = self.entry_for_goal_and_date(goal_id, date)
        if existing is not None:
            entry = existing.model_copy(
                update={
                    "completed": True,
                    "value": value,
                    "notes": notes,
                    "completed_at": completed_at,
                }
            )
            self._entries = [entry if e.id == existing.id else e for e in self._entries]
        else:
            entry = HealthEntry(
                goal_id=goal_id,
                date=date,
                completed=True,
                value=value,
                notes=notes,
                completed_at=completed_at,
            )
            self._entries = self._entries + [entry]
        self._persist_entry(entry)
        return entry

    def mark_goal_incomplete(self, goal_id: str, date: str) -> Optional[HealthEntry]:
        existing = self.entry_for_goal_and_date(goal_id, date)
        if existing is None:
            return None
        entry = existing.model_copy(update={"completed": False, "completed_at": None})
        self._entries = [entry if e.id == existing.id else e for e in self._entries]
        self._persist_entry(entry)
        return entry

    def update_entry(self, entry_id: str, **fields: Any) -> Optional[HealthEntry]:
        current = next((e for e in self._entries if e.id == entry_id), None)
        if current is None:
            return None
        for key in ("id", "goal_id", "date"):
            fields.pop(key, None)
        entry = HealthEntry.model_validate({**current.model_dump(), **fields})
        self._entries = [entry if e.id == entry_id else e for e in self._entries]
        self._persist_entry(entry)
        return entry

    # summaries
    def daily_summary(self, date: Optional[str] = None) -> dict:
        day = datetime.date.fromisoformat(date) if date else self.today()
        return HealthSummary.daily(self._goals, self._entries, day)

    def weekly_summary(self) -> dict:
        return HealthSummary.weekly(self._goals, self._entries, self.today())

    def stats(self) -> dict:
        return HealthSummary.stats(self._goals, self._entries, self.today())

    def trends(self) -> dict:
        return HealthSummary.trends(self._goals, self._entries, self.today())
