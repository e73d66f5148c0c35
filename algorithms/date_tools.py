import datetime
from typing import Union


class DateTools:
    """Local-time calendar helpers shared by the aggregators."""

    @staticmethod
    def parse_timestamp(value: Union[str, datetime.datetime, datetime.date]) -> datetime.datetime:
        """Return ``value`` as a naive local datetime.

        Offset-aware timestamps are converted to local time, plain dates are
        taken as local midnight.
        """
        if isinstance(value, datetime.datetime):
            dt = value
        elif isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time())
        else:
            dt = datetime.datetime.fromisoformat(value)
        if dt.tzinfo is not None:
            dt = dt.astimezone().replace(tzinfo=None)
        return dt

    @classmethod
    def local_date(cls, value: Union[str, datetime.datetime, datetime.date]) -> datetime.date:
        return cls.parse_timestamp(value).date()

    @staticmethod
    def start_of_day(dt: datetime.datetime) -> datetime.datetime:
        return dt.replace(hour=0, minute=0, second=0, microsecond=0)

    @classmethod
    def start_of_week(cls, dt: datetime.datetime) -> datetime.datetime:
        """Return midnight of the most recent Sunday on or before ``dt``."""
        days_since_sunday = (dt.weekday() + 1) % 7
        return cls.start_of_day(dt) - datetime.timedelta(days=days_since_sunday)

    @classmethod
    def week_dates(cls, day: datetime.date) -> list[datetime.date]:
        """Return the Sunday to Saturday dates of the week containing ``day``."""
        start = cls.start_of_week(datetime.datetime.combine(day, datetime.time())).date()
        return [start + datetime.timedelta(days=i) for i in range(7)]

    @classmethod
    def same_day(cls, value: Union[str, datetime.datetime], day: datetime.date) -> bool:
        return cls.local_date(value) == day

    @staticmethod
    def iso_day(day: datetime.date) -> str:
        return day.strftime("%Y-%m-%d")
