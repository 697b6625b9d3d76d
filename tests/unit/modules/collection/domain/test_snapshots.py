from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from idleness_exporter.modules.collection.domain.snapshots import (
    RedundantSnapshot,
    SnapshotAggregator,
    dedupe_snapshots,
    find_redundant_snapshots,
    parse_creation_timestamp,
    snapshot_age_days,
    summarize_snapshots,
)
from idleness_exporter.shared.core.exceptions import ExternalAPIError
from tests.factories import make_snapshot

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_parse_creation_timestamp_handles_offsets_and_zulu():
    assert parse_creation_timestamp("2024-03-01T12:00:00.123-08:00") == datetime(
        2024, 3, 1, 20, 0, 0, 123000, tzinfo=timezone.utc
    )
    assert parse_creation_timestamp("2024-03-01T12:00:00Z").tzinfo is not None
    assert parse_creation_timestamp("2024-03-01T12:00:00").tzinfo == timezone.utc


def test_age_is_floor_of_elapsed_days():
    assert snapshot_age_days(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc), NOW) == 9
    assert snapshot_age_days(datetime(2024, 3, 9, 12, 1, tzinfo=timezone.utc), NOW) == 0
    assert snapshot_age_days(datetime(2024, 3, 11, tzinfo=timezone.utc), NOW) == 0


def test_dedupe_keeps_first_by_name():
    first = make_snapshot("s1", "data", "2024-03-01T00:00:00Z")
    again = make_snapshot("s1", "data", "2024-03-05T00:00:00Z")
    other = make_snapshot("s2", "data", "2024-03-02T00:00:00Z")

    assert dedupe_snapshots([first, other, again]) == [first, other]


def test_two_snapshots_of_one_disk_flag_the_older():
    a = make_snapshot("A", "data", "2024-03-01T00:00:00Z", disk_id="1")
    b = make_snapshot("B", "data", "2024-03-05T00:00:00Z", disk_id="1")

    assert [s.name for s in find_redundant_snapshots([b, a])] == ["A"]
    assert [s.name for s in find_redundant_snapshots([a, b])] == ["A"]


def test_equal_timestamps_flag_the_second_of_the_pair():
    a = make_snapshot("A", "data", "2024-03-01T00:00:00Z", disk_id="1")
    b = make_snapshot("B", "data", "2024-03-01T00:00:00Z", disk_id="1")

    assert [s.name for s in find_redundant_snapshots([a, b])] == ["B"]


def test_different_disks_and_blank_disk_ids_are_never_paired():
    snapshots = [
        make_snapshot("A", "one", "2024-03-01T00:00:00Z", disk_id="1"),
        make_snapshot("B", "two", "2024-03-02T00:00:00Z", disk_id="2"),
        make_snapshot("C", "gone", "2024-03-03T00:00:00Z", disk_id=""),
        make_snapshot("D", "gone", "2024-03-04T00:00:00Z", disk_id=""),
    ]

    assert find_redundant_snapshots(snapshots) == []


def test_flagged_snapshot_is_not_reused_as_left_side_of_next_pair():
    a = make_snapshot("A", "data", "2024-03-05T00:00:00Z", disk_id="1")
    b = make_snapshot("B", "data", "2024-03-01T00:00:00Z", disk_id="1")
    c = make_snapshot("C", "data", "2024-03-09T00:00:00Z", disk_id="1")

    assert [s.name for s in find_redundant_snapshots([a, b, c])] == ["B"]


def test_runs_of_three_can_miss_an_old_snapshot():
    # B is flagged against A, so the B/C pair is skipped and C escapes
    # although it is older than A.
    a = make_snapshot("A", "data", "2024-03-05T00:00:00Z", disk_id="1")
    b = make_snapshot("B", "data", "2024-03-01T00:00:00Z", disk_id="1")
    c = make_snapshot("C", "data", "2024-03-02T00:00:00Z", disk_id="1")

    assert [s.name for s in find_redundant_snapshots([a, b, c])] == ["B"]


def test_summary_counts_ages_and_redundancy():
    snapshots = [
        make_snapshot("A", "data", "2024-03-01T12:00:00Z", disk_id="1"),
        make_snapshot("B", "data", "2024-03-08T12:00:00Z", disk_id="1"),
        make_snapshot("C", "logs", "2024-03-10T00:00:00Z", disk_id="2"),
        # overlapping page
        make_snapshot("A", "data", "2024-03-01T12:00:00Z", disk_id="1"),
    ]

    report = summarize_snapshots(snapshots, project="p", now=NOW)

    assert {(a.disk, a.snapshot, a.age_days) for a in report.ages} == {
        ("data", "A", 9),
        ("data", "B", 2),
        ("logs", "C", 0),
    }
    assert report.disks["data"].count == 2
    assert report.disks["data"].newest_age_days == 2
    assert report.disks["logs"].count == 1
    assert report.redundant == [RedundantSnapshot(disk="data", snapshot="A")]


def test_unparsable_timestamp_is_counted_but_not_aged():
    log = MagicMock()
    snapshots = [
        make_snapshot("good", "data", "2024-03-01T12:00:00Z"),
        make_snapshot("bad", "data", "not-a-date"),
    ]

    report = summarize_snapshots(snapshots, project="p", now=NOW, log=log)

    assert [a.snapshot for a in report.ages] == ["good"]
    assert report.disks["data"].count == 2
    log.error.assert_called_once()
    assert log.error.call_args.args[0] == "snapshot_timestamp_parse_failed"


@pytest.mark.asyncio
async def test_aggregator_lists_and_summarizes(fake_compute):
    fake_compute.snapshots = [
        make_snapshot("A", "data", "2024-03-01T12:00:00Z", disk_id="1"),
        make_snapshot("B", "data", "2024-03-05T12:00:00Z", disk_id="1"),
    ]

    report = await SnapshotAggregator(fake_compute).aggregate("p", now=NOW)

    assert report.disks["data"].count == 2
    assert [r.snapshot for r in report.redundant] == ["A"]


@pytest.mark.asyncio
async def test_aggregator_propagates_listing_failure(fake_compute):
    fake_compute.fail_snapshots = True

    with pytest.raises(ExternalAPIError):
        await SnapshotAggregator(fake_compute).aggregate("p", now=NOW)
