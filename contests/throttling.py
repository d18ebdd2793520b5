from rest_framework.throttling import UserRateThrottle


class SubmissionRateThrottle(UserRateThrottle):
    """Strict rate limit for contest submissions to prevent abuse."""
    scope = 'submission'
    rate = '10/minute'
