from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

import pytest

from fdrsync.domain.acquisition import (
    FlowAcquisitionStage,
    RetrySettings,
    SkipLimitExceededError,
    StageStats,
    UnknownDomainError,
    partition_by_domain,
)
from fdrsync.domain.model import FlowStatus, ItemStatus, Payment, ReconciledFlow, StagingFlow
from tests.helpers.fdr import (
    BASE_TIME,
    FakeClock,
    FakeDomainRepository,
    FakeFlowSource,
    FakePaymentRepository,
    FakeStagingRepository,
    FakeUnitOfWorkFactory,
    at,
    make_domain,
    permanent,
    reported,
    transient,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from fdrsync.domain.model import ReportedPayment

DOMAIN_A = "11111111111"
DOMAIN_B = "22222222222"
IUV = "123456789012345"


def _publish_and_stage(
    source: FakeFlowSource,
    uow_factory: FakeUnitOfWorkFactory,
    domain_code: str,
    flow_code: str,
    *,
    published_at: datetime = BASE_TIME,
    payments: Sequence[ReportedPayment] = (),
) -> StagingFlow:
    header = source.publish(domain_code, flow_code, published_at=published_at, payments=payments)
    staged = StagingFlow.from_header(domain_code, header)
    FakeStagingRepository(uow_factory.store).add(staged)
    return staged


def _stage(
    source: FakeFlowSource,
    uow_factory: FakeUnitOfWorkFactory,
    clock: FakeClock,
    *,
    skip_limit: int = 10,
    page_size: int = 100,
) -> FlowAcquisitionStage:
    return FlowAcquisitionStage(
        source=source,
        unit_of_work_factory=uow_factory,
        skip_limit=skip_limit,
        page_size=page_size,
        retry=RetrySettings(attempts=2, backoff_seconds=0, sleep=lambda _: None),
        clock=clock,
    )


def test_partition_by_domain_numbers_partitions() -> None:
    partitions = partition_by_domain([DOMAIN_A, DOMAIN_B])

    assert [p.name for p in partitions] == [f"partition-{DOMAIN_A}", f"partition-{DOMAIN_B}"]
    assert [(p.number, p.total) for p in partitions] == [(1, 2), (2, 2)]


def test_staged_flow_is_enriched_reconciled_and_unstaged(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    FakeDomainRepository(uow_factory.store).add(make_domain(DOMAIN_A))
    payment = Payment(
        domain_code=DOMAIN_A, iuv=IUV, iur="IUR-1", item_index=1, paid_amount=Decimal("10.50")
    )
    FakePaymentRepository(uow_factory.store).add(payment)
    _publish_and_stage(
        source, uow_factory, DOMAIN_A, "FLOW-1", payments=[reported(IUV, "10.50")]
    )
    stats = StageStats(name="flow-acquisition")

    _stage(source, uow_factory, clock).run(stats)

    assert uow_factory.store.staging == {}
    [flow] = uow_factory.store.reconciled
    assert flow.flow_code == "FLOW-1"
    assert flow.settlement_id == "SETTLE-FLOW-1"
    assert flow.acquired_at == clock.now
    assert flow.status is FlowStatus.ACCEPTED
    assert [item.status for item in flow.items] == [ItemStatus.OK]
    assert flow.items[0].payment is payment
    assert stats.read == 1
    assert stats.written == 1
    assert stats.partitions[DOMAIN_A].written == 1


def test_already_reconciled_flow_is_dropped_from_staging(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    FakeDomainRepository(uow_factory.store).add(make_domain(DOMAIN_A))
    uow_factory.store.reconciled.append(
        ReconciledFlow(domain_code=DOMAIN_A, flow_code="FLOW-1", psp_id="PSP1", revision=1)
    )
    _publish_and_stage(source, uow_factory, DOMAIN_A, "FLOW-1")
    stats = StageStats(name="flow-acquisition")

    _stage(source, uow_factory, clock).run(stats)

    assert uow_factory.store.staging == {}
    assert len(uow_factory.store.reconciled) == 1
    assert stats.written == 0
    assert stats.skipped_in_final == 1


def test_flow_of_unknown_domain_stays_staged(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    _publish_and_stage(source, uow_factory, DOMAIN_A, "FLOW-1")
    stats = StageStats(name="flow-acquisition")

    _stage(source, uow_factory, clock).run(stats)

    assert len(uow_factory.store.staging) == 1
    assert uow_factory.store.reconciled == []
    assert stats.errors == 1
    assert stats.skipped == 1
    assert stats.partitions[DOMAIN_A].errors == 1
    assert source.calls.count(("payments", (DOMAIN_A, "FLOW-1", 1, "PSP1"))) == 1


def test_flow_of_unknown_domain_counts_against_skip_limit(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    _publish_and_stage(source, uow_factory, DOMAIN_A, "FLOW-1")

    with pytest.raises(SkipLimitExceededError) as excinfo:
        _stage(source, uow_factory, clock, skip_limit=0).run(StageStats(name="flow-acquisition"))

    assert isinstance(excinfo.value.__cause__, UnknownDomainError)
    assert len(uow_factory.store.staging) == 1


def test_flows_are_processed_in_publication_order_across_pages(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    FakeDomainRepository(uow_factory.store).add(make_domain(DOMAIN_A))
    for minute in (9, 3, 7, 1, 5):
        _publish_and_stage(
            source, uow_factory, DOMAIN_A, f"FLOW-{minute}", published_at=at(minute)
        )
    stats = StageStats(name="flow-acquisition")

    _stage(source, uow_factory, clock, page_size=2).run(stats)

    written = [flow.flow_code for flow in uow_factory.store.reconciled]
    assert written == ["FLOW-1", "FLOW-3", "FLOW-5", "FLOW-7", "FLOW-9"]
    assert stats.written == 5


def test_each_domain_gets_its_own_partition(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    for code in (DOMAIN_A, DOMAIN_B):
        FakeDomainRepository(uow_factory.store).add(make_domain(code))
        _publish_and_stage(source, uow_factory, code, f"FLOW-{code}")
    stats = StageStats(name="flow-acquisition")

    _stage(source, uow_factory, clock).run(stats)

    assert set(stats.partitions) == {DOMAIN_A, DOMAIN_B}
    assert stats.written == 2


def test_transient_fetch_failure_is_retried(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    FakeDomainRepository(uow_factory.store).add(make_domain(DOMAIN_A))
    _publish_and_stage(source, uow_factory, DOMAIN_A, "FLOW-1")
    source.fail("payments", (DOMAIN_A, "FLOW-1", 1, "PSP1"), transient())
    stats = StageStats(name="flow-acquisition")

    _stage(source, uow_factory, clock).run(stats)

    assert stats.written == 1
    assert stats.errors == 0


def test_failed_flow_is_skipped_and_left_staged(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    FakeDomainRepository(uow_factory.store).add(make_domain(DOMAIN_A))
    _publish_and_stage(source, uow_factory, DOMAIN_A, "FLOW-1", published_at=at(1))
    _publish_and_stage(source, uow_factory, DOMAIN_A, "FLOW-2", published_at=at(2))
    source.fail("details", (DOMAIN_A, "FLOW-1", 1, "PSP1"), permanent())
    stats = StageStats(name="flow-acquisition")

    _stage(source, uow_factory, clock, skip_limit=1).run(stats)

    assert [flow.flow_code for flow in uow_factory.store.staging.values()] == ["FLOW-1"]
    assert [flow.flow_code for flow in uow_factory.store.reconciled] == ["FLOW-2"]
    assert stats.skipped == 1
    assert stats.errors == 1


def test_exceeding_skip_limit_fails_the_stage(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    FakeDomainRepository(uow_factory.store).add(make_domain(DOMAIN_A))
    _publish_and_stage(source, uow_factory, DOMAIN_A, "FLOW-1")
    source.fail("details", (DOMAIN_A, "FLOW-1", 1, "PSP1"), permanent())

    with pytest.raises(SkipLimitExceededError):
        _stage(source, uow_factory, clock, skip_limit=0).run(StageStats(name="flow-acquisition"))


def test_empty_staging_makes_no_upstream_calls(
    source: FakeFlowSource, uow_factory: FakeUnitOfWorkFactory, clock: FakeClock
) -> None:
    stats = StageStats(name="flow-acquisition")

    _stage(source, uow_factory, clock).run(stats)

    assert source.calls == []
    assert stats.partitions == {}
