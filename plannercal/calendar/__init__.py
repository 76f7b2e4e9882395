"""iCalendar fetching, parsing and recurrence expansion."""
