"""
API Call Counter - daily cap on outbound collaborator calls
"""
from datetime import date
from typing import Dict, Optional

from geoquery.config import settings

from .errors import APIQuotaExceeded


class APICounter:
    """API call counter"""

    def __init__(self, max_calls_per_day: Optional[int] = None):
        self.max_calls_per_day = (
            max_calls_per_day
            if max_calls_per_day is not None
            else settings.max_api_calls_per_day
        )
        self.call_count: Dict[str, int] = {}
        self.current_date = date.today()

    def _today_key(self) -> str:
        today = date.today()
        # Reset counter if date changes
        if today != self.current_date:
            self.call_count.clear()
            self.current_date = today
        return today.isoformat()

    def can_make_call(self) -> bool:
        """Check if API can be called"""
        return self.call_count.get(self._today_key(), 0) < self.max_calls_per_day

    def check(self) -> None:
        """Raise APIQuotaExceeded once today's budget is spent"""
        if not self.can_make_call():
            raise APIQuotaExceeded(
                f"API call limit exceeded. Max calls per day: {self.max_calls_per_day}"
            )

    def record_call(self) -> None:
        """Record one API call"""
        key = self._today_key()
        self.call_count[key] = self.call_count.get(key, 0) + 1

    def get_remaining_calls(self) -> int:
        """Get remaining call count"""
        current_calls = self.call_count.get(self._today_key(), 0)
        return max(0, self.max_calls_per_day - current_calls)
