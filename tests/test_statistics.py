"""
Unit tests for the daily statistics aggregator.
"""

from datetime import date

from govverify.services import statistics

DAY = date(2025, 3, 14)


def count_verification(db, status, response_time_ms=None, day=DAY) -> None:
    with db.transaction() as conn:
        statistics.record_verification(conn, status, response_time_ms, day=day)


def count_threat(db, is_urgent, amount_lost=None, day=DAY) -> None:
    with db.transaction() as conn:
        statistics.record_threat(conn, is_urgent, amount_lost, day=day)


def test_no_row_before_first_event(db) -> None:
    assert statistics.get_daily_statistics(db, DAY) is None


def test_running_average_of_response_times(db) -> None:
    count_verification(db, "PENDING", 100)
    count_verification(db, "PENDING", 300)
    row = statistics.get_daily_statistics(db, DAY)
    assert row["total_verifications"] == 2
    assert row["avg_response_time_ms"] == 200


def test_verification_without_sample_keeps_average(db) -> None:
    count_verification(db, "PENDING", 120)
    count_verification(db, "PENDING", None)
    row = statistics.get_daily_statistics(db, DAY)
    assert row["total_verifications"] == 2
    assert row["avg_response_time_ms"] == 120


def test_pending_bumps_only_total(db) -> None:
    count_verification(db, "PENDING", 50)
    row = statistics.get_daily_statistics(db, DAY)
    assert row["total_verifications"] == 1
    assert row["verified_true"] == 0
    assert row["verified_false"] == 0
    assert row["verified_partial"] == 0
    assert row["unverified"] == 0


def test_terminal_status_bumps_matching_counter(db) -> None:
    count_verification(db, "VERIFIED")
    count_verification(db, "FALSE")
    count_verification(db, "FALSE")
    row = statistics.get_daily_statistics(db, DAY)
    assert row["verified_true"] == 1
    assert row["verified_false"] == 2
    assert row["total_verifications"] == 3


def test_urgent_threats_and_amount_lost(db) -> None:
    count_threat(db, True, 500000)
    count_threat(db, True, 250000)
    row = statistics.get_daily_statistics(db, DAY)
    assert row["total_threats"] == 2
    assert row["urgent_threats"] == 2
    assert row["total_amount_lost_daily"] == 750000


def test_non_urgent_threat_without_loss(db) -> None:
    count_threat(db, False, None)
    count_threat(db, False, 0)
    row = statistics.get_daily_statistics(db, DAY)
    assert row["total_threats"] == 2
    assert row["urgent_threats"] == 0
    assert row["total_amount_lost_daily"] == 0


def test_days_are_separate_rows(db) -> None:
    count_threat(db, False, 10)
    count_threat(db, False, 10, day=date(2025, 3, 15))
    assert statistics.get_daily_statistics(db, DAY)["total_threats"] == 1


def test_user_activity_counts_new_and_active_users(db) -> None:
    statistics.record_user_activity(db, "+1", day=DAY)
    statistics.record_user_activity(db, "+1", day=DAY)
    statistics.record_user_activity(db, "+2", day=DAY)
    row = statistics.get_daily_statistics(db, DAY)
    assert row["new_users"] == 2
    assert row["active_users"] == 2

    next_day = date(2025, 3, 15)
    statistics.record_user_activity(db, "+1", day=next_day)
    row = statistics.get_daily_statistics(db, next_day)
    assert row["new_users"] == 0
    assert row["active_users"] == 1
