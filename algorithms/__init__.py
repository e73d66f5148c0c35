from .math_tools import MathTools
from .date_tools import DateTools
from .weekly_recap import WeeklyRecap
from .workout_recap import WorkoutRecap
from .health_summary import HealthSummary

__all__ = ["MathTools", "DateTools", "WeeklyRecap", "WorkoutRecap", "HealthSummary"]
