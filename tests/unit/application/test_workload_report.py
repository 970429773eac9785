"""Tests for WorkloadReportUseCase."""

import pytest

from dispatch.application.use_cases.workload_report import WorkloadReportUseCase
from dispatch.domain.errors import ProviderError
from dispatch.domain.value_objects.enums import LoadLevel
from fakes import FakeAgentProvider, make_agent


@pytest.mark.asyncio
async def test_report_sorted_by_utilisation_with_totals():
    provider = FakeAgentProvider([
        make_agent("a", workload=2, capacity=10),
        make_agent("b", workload=9, capacity=10),
        make_agent("c", workload=7, capacity=10),
    ])
    report = await WorkloadReportUseCase(provider).execute()

    assert [row.agent_id for row in report.agents] == ["b", "c", "a"]
    assert [row.load_level for row in report.agents] == [
        LoadLevel.OVERLOADED, LoadLevel.BALANCED, LoadLevel.UNDERLOADED,
    ]
    assert report.total_open_tickets == 18
    assert report.total_capacity == 30

    data = report.to_dict()
    assert data["overloaded"] == 1
    assert data["underloaded"] == 1
    assert data["agents"][0]["utilization"] == 0.9


@pytest.mark.asyncio
async def test_report_propagates_provider_error():
    provider = FakeAgentProvider([])
    provider.fail_list = True
    with pytest.raises(ProviderError):
        await WorkloadReportUseCase(provider).execute()


@pytest.mark.asyncio
async def test_report_timeout_becomes_provider_error():
    provider = FakeAgentProvider([make_agent("a")])
    provider.list_delay = 0.2
    with pytest.raises(ProviderError):
        await WorkloadReportUseCase(provider, timeout=0.01).execute()
