# tests/unit/test_results.py
from gymtrack.utils import results
from gymtrack.utils.results import Result


def test_success_is_truthy_and_expected():
    r = Result.success(5, "done")
    assert r
    assert r.is_expected
    assert r.to_dict() == {"ok": True, "value": 5, "message": "done"}


def test_domain_failures_are_expected_storage_is_not():
    for code in (results.NOT_FOUND, results.MEMBERSHIP_EXPIRED, results.ALREADY_CHECKED_IN,
                 results.CONFIGURATION_ERROR, results.NO_MATCHING_MEMBERS, results.VALIDATION_FAILED):
        failure = Result.failure(code, "nope")
        assert not failure
        assert failure.is_expected

    storage = Result.failure(results.STORAGE_ERROR, "disk gone")
    assert not storage.is_expected
    assert storage.to_dict() == {"ok": False, "value": None, "error": "storage_error", "message": "disk gone"}


def test_value_with_to_dict_is_serialized():
    summary = results.BulkStatusSummary(2, 1, 1)
    assert Result.success(summary).to_dict()["value"] == {
        "success_count": 2, "error_count": 1, "email_sent_count": 1,
    }
