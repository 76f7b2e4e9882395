"""Exception hierarchy for plannercal.

Errors are contained at the smallest meaningful scope: a bad recurrence rule
only affects its component, a failing feed only affects that feed. The
exceptions below are the ones that cross module boundaries.
"""


class PlannerCalError(Exception):
    """Base exception for all plannercal errors."""


class InvalidRangeError(PlannerCalError):
    """The requested date range could not be interpreted.

    Raised when:
    - ``from`` or ``to`` is missing
    - either value is not a ``YYYY-MM-DD`` civil date

    Should result in HTTP 400 Bad Request response, before any feed work.
    """


class InvalidTimezoneError(PlannerCalError):
    """The configured target timezone is not a known IANA zone."""


class FeedNotFoundError(PlannerCalError):
    """No calendar feed exists with the requested id.

    Should result in HTTP 404 Not Found response.
    """

    def __init__(self, feed_id: str):
        super().__init__(f"Feed not found: {feed_id}")
        self.feed_id = feed_id


class FeedValidationError(PlannerCalError):
    """A feed create/update payload is missing required fields."""
