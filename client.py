import requests
from typing import Any, Dict, List, Optional


class FitnessClient:
    """Simple REST client for the fitness API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        session: Optional[Any] = None,
        api_key: Optional[str] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.headers = {"X-API-Key": api_key} if api_key else {}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        resp = self.session.request(
            method, f"{self.base_url}{path}", headers=self.headers, **kwargs
        )
        resp.raise_for_status()
        return resp.json()

    def health(self) -> Dict:
        return self._request("GET", "/health")

    def list_exercises(self, query: str = "", muscle_group: Optional[str] = None) -> List[Dict]:
        params = {"query": query}
        if muscle_group:
            params["muscle_group"] = muscle_group
        return self._request("GET", "/exercises", params=params)

    def add_custom_exercise(self, name: str, muscle_groups: List[str]) -> Dict:
        return self._request(
            "POST",
            "/exercises/custom",
            params={"name": name, "muscle_groups": "|".join(muscle_groups)},
        )

    def start_workout(self, name: str) -> Dict:
        return self._request("POST", "/active_workout", params={"name": name})

    def active_workout(self) -> Optional[Dict]:
        return self._request("GET", "/active_workout")

    def add_exercise(self, exercise_id: str) -> Dict:
        return self._request(
            "POST", "/active_workout/exercises", params={"exercise_id": exercise_id}
        )

    def add_set(self, workout_exercise_id: str) -> Dict:
        return self._request(
            "POST", f"/active_workout/exercises/{workout_exercise_id}/sets"
        )

    def update_set(self, workout_exercise_id: str, set_id: str, **fields: Any) -> Dict:
        return self._request(
            "PUT",
            f"/active_workout/exercises/{workout_exercise_id}/sets/{set_id}",
            json=fields,
        )

    def complete_workout(self) -> Dict:
        return self._request("POST", "/active_workout/complete")

    def cancel_workout(self) -> Dict:
        return self._request("DELETE", "/active_workout")

    def list_workouts(self, date: Optional[str] = None) -> List[Dict]:
        params = {"date": date} if date else {}
        return self._request("GET", "/workouts", params=params)

    def workout_recap(self, workout_id: str) -> Dict:
        return self._request("GET", f"/workouts/{workout_id}/recap")

    def create_planned_workout(self, name: str, date: str) -> Dict:
        return self._request(
            "POST", "/planned_workouts", params={"name": name, "date": date}
        )

    def plan_exercise(self, plan_id: str, exercise_id: str) -> Dict:
        return self._request(
            "POST",
            f"/planned_workouts/{plan_id}/exercises",
            params={"exercise_id": exercise_id},
        )

    def start_planned_workout(self, plan_id: str) -> Dict:
        return self._request("POST", f"/planned_workouts/{plan_id}/start")

    def summary(self) -> Dict:
        return self._request("GET", "/summary")

    def weekly_recap(self) -> Dict:
        return self._request("GET", "/stats/weekly_recap")

    def create_health_goal(self, name: str, goal_type: str = "custom", frequency: str = "daily") -> Dict:
        return self._request(
            "POST",
            "/health_goals",
            params={"name": name, "goal_type": goal_type, "frequency": frequency},
        )

    def complete_health_goal(self, goal_id: str, date: str, value: Optional[float] = None) -> Dict:
        params: Dict[str, Any] = {"date": date}
        if value is not None:
            params["value"] = value
        return self._request("POST", f"/health_goals/{goal_id}/complete", params=params)

    def daily_health_summary(self, date: Optional[str] = None) -> Dict:
        params = {"date": date} if date else {}
        return self._request("GET", "/health_summary/daily", params=params)
