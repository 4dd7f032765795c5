"""Typed outcomes returned by every public model operation."""

NOT_FOUND = 'not_found'
MEMBERSHIP_EXPIRED = 'membership_expired'
ALREADY_CHECKED_IN = 'already_checked_in'
CONFIGURATION_ERROR = 'configuration_error'
NO_MATCHING_MEMBERS = 'no_matching_members'
VALIDATION_FAILED = 'validation_failed'
STORAGE_ERROR = 'storage_error'

EXPECTED_ERRORS = frozenset([
    NOT_FOUND,
    MEMBERSHIP_EXPIRED,
    ALREADY_CHECKED_IN,
    CONFIGURATION_ERROR,
    NO_MATCHING_MEMBERS,
    VALIDATION_FAILED,
])


class Result:
    def __init__(self, ok, value=None, error=None, message=None):
        self.ok = ok
        self.value = value
        self.error = error
        self.message = message

    @classmethod
    def success(cls, value=None, message=None):
        return cls(True, value=value, message=message)

    @classmethod
    def failure(cls, error, message):
        return cls(False, error=error, message=message)

    @property
    def is_expected(self):
        """False only for storage failures, which callers alert on instead of showing to the user."""
        return self.ok or self.error in EXPECTED_ERRORS

    def to_dict(self):
        value = self.value.to_dict() if hasattr(self.value, 'to_dict') else self.value
        data = {'ok': self.ok, 'value': value}
        if self.error:
            data['error'] = self.error
        if self.message:
            data['message'] = self.message
        return data

    def __bool__(self):
        return self.ok

    def __repr__(self):
        if self.ok:
            return f"<Result ok value={self.value!r}>"
        return f"<Result error={self.error} message={self.message!r}>"


class EmailBroadcastSummary:
    """Counters for bulk email and announcement broadcast. Ineligible members land in no bucket."""

    def __init__(self, attempted=0, successful=0, no_email_address=0, failed=0):
        self.attempted = attempted
        self.successful = successful
        self.no_email_address = no_email_address
        self.failed = failed

    def to_dict(self):
        return {
            'attempted': self.attempted,
            'successful': self.successful,
            'no_email_address': self.no_email_address,
            'failed': self.failed,
        }

    def __repr__(self):
        return (f"<EmailBroadcastSummary attempted={self.attempted} successful={self.successful} "
                f"no_email_address={self.no_email_address} failed={self.failed}>")


class BulkStatusSummary:
    def __init__(self, success_count=0, error_count=0, email_sent_count=0):
        self.success_count = success_count
        self.error_count = error_count
        self.email_sent_count = email_sent_count

    def to_dict(self):
        return {
            'success_count': self.success_count,
            'error_count': self.error_count,
            'email_sent_count': self.email_sent_count,
        }

    def __repr__(self):
        return (f"<BulkStatusSummary success={self.success_count} errors={self.error_count} "
                f"emails={self.email_sent_count}>")
